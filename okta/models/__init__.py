from .user import OktaUser
from .group import GroupType, OktaGroup

__all__ = ['OktaUser', 'OktaGroup', 'GroupType']
