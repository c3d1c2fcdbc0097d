"""
Routes package for News Vote API.
"""

from newsvote.routes.comments import router as comments_router
from newsvote.routes.news import router as news_router
from newsvote.routes.users import router as users_router
from newsvote.routes.votes import router as votes_router

__all__ = ["comments_router", "news_router", "users_router", "votes_router"]
