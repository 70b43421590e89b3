from .okta_api import OktaAPI, create_headers
from .user_api import UserAPI
from .group_api import GroupAPI

__all__ = [
    'OktaAPI',
    'create_headers',
    'UserAPI',
    'GroupAPI',
]
