from .accounts import User, Affiliation, ROLE_EMPLOYEE, ROLE_HR
from .assets import Asset, ASSET_TYPE_RETURNABLE, ASSET_TYPE_NON_RETURNABLE
from .requests import AssetRequest, Assignment
from .auth import SessionToken

__all__ = [
    'User', 'Affiliation', 'ROLE_EMPLOYEE', 'ROLE_HR',
    'Asset', 'ASSET_TYPE_RETURNABLE', 'ASSET_TYPE_NON_RETURNABLE',
    'AssetRequest', 'Assignment',
    'SessionToken',
]
