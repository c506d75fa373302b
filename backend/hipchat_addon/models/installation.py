"""
Installation model - one row per HipChat add-on installation.

SECURITY:
- oauth_secret is the HMAC key for signed requests and the client secret
  for token exchange. NEVER log it; use to_safe_dict().

Keying:
- oauth_id is the primary key and the uninstall delete key
- (group_id, room_id) is unique; room_id 0 marks a group-scoped install
"""

from sqlalchemy import BigInteger, Column, Index, String

from hipchat_addon.db_base import Base
from hipchat_addon.credentials.records import NO_ROOM, InstallRecord


class Installation(Base):
    """Persisted OAuth credentials for one tenant installation."""

    __tablename__ = "installation"

    oauth_id = Column(
        String(255),
        primary_key=True,
        comment="OAuth client id issued by HipChat for this installation"
    )
    capabilities_url = Column(
        String(255),
        nullable=False,
        default="",
        comment="HipChat capabilities document URL"
    )
    oauth_secret = Column(
        String(255),
        nullable=False,
        comment="OAuth client secret - NEVER log"
    )
    group_id = Column(
        BigInteger,
        nullable=False,
        comment="HipChat group (organization) id"
    )
    room_id = Column(
        BigInteger,
        nullable=False,
        default=NO_ROOM,
        comment="Room id; 0 for group-scoped installations"
    )

    __table_args__ = (
        Index("installation_uniq", "group_id", "room_id", unique=True),
        Index("ix_installation_room_id", "room_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Installation("
            f"oauth_id={self.oauth_id}, "
            f"group_id={self.group_id}, "
            f"room_id={self.room_id})>"
        )

    @classmethod
    def from_record(cls, record: InstallRecord) -> "Installation":
        return cls(
            oauth_id=record.oauth_id,
            capabilities_url=record.capabilities_url,
            oauth_secret=record.oauth_secret,
            group_id=record.group_id,
            room_id=record.room_id,
        )

    def to_record(self) -> InstallRecord:
        return InstallRecord(
            capabilities_url=self.capabilities_url or "",
            oauth_id=self.oauth_id,
            oauth_secret=self.oauth_secret,
            group_id=int(self.group_id),
            room_id=int(self.room_id or NO_ROOM),
        )

    def to_safe_dict(self) -> dict:
        """
        Return dictionary safe for logging.

        SECURITY: Excludes oauth_secret.
        """
        return {
            "oauth_id": self.oauth_id,
            "capabilities_url": self.capabilities_url,
            "group_id": self.group_id,
            "room_id": self.room_id,
        }
