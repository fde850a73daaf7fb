from rwa_auth.models.role import Role, parse_role
from rwa_auth.models.session import AuthSession
