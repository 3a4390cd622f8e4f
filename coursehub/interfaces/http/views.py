from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates

from ...domain.entities import Identity

templates_dir = Path(__file__).resolve().parents[2] / "templates"
templates = Jinja2Templates(directory=str(templates_dir))


def render(request: Request, name: str, user: Identity | None = None,
           status_code: int = 200, **data):
    """Отрисовка страницы: роль + данные, flash-сообщения забираются из сессии."""
    session = getattr(request.state, "session", None)
    flashes = session.pop_flashes() if session is not None else []
    context = {
        "user": user,
        "role": user.role.value if user else None,
        "success_msg": [m for c, m in flashes if c == "success_msg"],
        "err_msg": [m for c, m in flashes if c == "err_msg"],
        **data,
    }
    return templates.TemplateResponse(request, name, context, status_code=status_code)
