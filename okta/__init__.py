from .facade.okta_facade import OktaClient
from .models.group import GroupType, OktaGroup
from .models.user import OktaUser

__all__ = ['OktaClient', 'OktaGroup', 'OktaUser', 'GroupType']
