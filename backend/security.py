from typing import Iterable, List, Optional

from fastapi import Depends

from auth import AdminPrincipal, get_current_admin
from errors import forbidden
from models import Segment


def _segment_value(segment) -> str:
    return segment.value if hasattr(segment, "value") else str(segment)


def visible_segments(principal: AdminPrincipal) -> Optional[List[str]]:
    """Segments the principal may read; ``None`` means unrestricted."""
    if principal.is_super_admin:
        return None
    return list(principal.scopes)


def can_access_segment(principal: AdminPrincipal, segment) -> bool:
    if principal.is_super_admin:
        return True
    return _segment_value(segment) in set(principal.scopes)


def can_access_any(principal: AdminPrincipal, segments: Iterable) -> bool:
    if principal.is_super_admin:
        return True
    wanted = {_segment_value(s) for s in segments}
    return bool(wanted & set(principal.scopes))


def apply_scope_filter(query, column, principal: AdminPrincipal):
    allowed = visible_segments(principal)
    if allowed is None:
        return query
    return query.filter(column.in_([Segment(value) for value in allowed]))


def require_admin(principal: AdminPrincipal = Depends(get_current_admin)) -> AdminPrincipal:
    return principal


def require_super_admin(principal: AdminPrincipal = Depends(get_current_admin)) -> AdminPrincipal:
    if not principal.is_super_admin:
        raise forbidden("Super admin access required")
    return principal


def require_scope(allowed: Iterable):
    allowed_values = [_segment_value(s) for s in allowed]

    def _checker(principal: AdminPrincipal = Depends(get_current_admin)) -> AdminPrincipal:
        if not can_access_any(principal, allowed_values):
            raise forbidden("Insufficient permissions")
        return principal

    return _checker
