from .auth import (
    CurrentUser,
    auth_required,
    clear_auth_cookie,
    current_user,
    issue_token,
    require_role,
    set_auth_cookie,
)
from .request import get_json_body, page_args

__all__ = [
    # Auth
    "CurrentUser",
    "auth_required",
    "clear_auth_cookie",
    "current_user",
    "issue_token",
    "require_role",
    "set_auth_cookie",
    # Request helpers
    "get_json_body",
    "page_args",
]
