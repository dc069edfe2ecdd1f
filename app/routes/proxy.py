"""
Authenticated pass-through routes for the clinic and files services.
"""
from flask import Blueprint, current_app, request

from app.config import CLINIC_PREFIXES, FILES_PREFIXES
from app.utils.auth import auth_required

proxy_bp = Blueprint('proxy', __name__)

PROXY_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']


@auth_required
def forward_to_service(subpath=None):
    router = current_app.extensions['proxy_router']
    return router.forward(request)


for _prefix in CLINIC_PREFIXES + FILES_PREFIXES:
    _name = _prefix.strip('/').replace('/', '_')
    proxy_bp.add_url_rule(_prefix, f'{_name}_root', forward_to_service, methods=PROXY_METHODS)
    proxy_bp.add_url_rule(f'{_prefix}/<path:subpath>', _name, forward_to_service, methods=PROXY_METHODS)
