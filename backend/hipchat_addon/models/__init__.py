"""Database models for the add-on installation store."""

from hipchat_addon.models.installation import Installation

__all__ = ["Installation"]
