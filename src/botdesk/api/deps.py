from __future__ import annotations

from fastapi import Request

from botdesk.app import BotDeskApp


def get_botdesk(request: Request) -> BotDeskApp:
    return request.app.state.botdesk
