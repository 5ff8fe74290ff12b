"""Click SQLAlchemy model for storing click records."""

from sqlalchemy import Boolean, Float, Integer, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from clicklog.core.database import Base


class Click(Base):
    """Click model for storing one tracked click and its enrichment.

    Capture-time and approximate-location columns are written once when the
    click is recorded. The precise/device columns are written only by a
    browser enrichment report and are overwritten by a later one.
    """

    __tablename__ = "clicks"

    id: Mapped[str] = mapped_column(
        Text,
        primary_key=True,
        comment="Random hex identifier, also the correlation cookie value",
    )
    created_at: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        index=True,
        comment="UTC ISO-8601 capture time",
    )
    ip: Mapped[str | None] = mapped_column(Text, comment="Client IP address")
    ip_chain: Mapped[str | None] = mapped_column(
        Text,
        comment="Raw X-Forwarded-For header",
    )
    user_agent: Mapped[str | None] = mapped_column(Text)
    accept_language: Mapped[str | None] = mapped_column(Text)
    referrer: Mapped[str | None] = mapped_column(Text)
    dest_url: Mapped[str | None] = mapped_column(
        Text,
        comment="Validated destination, or the bait sentinel",
    )

    # Approximate location (from the IP lookup)
    approx_country: Mapped[str | None] = mapped_column(Text)
    approx_region: Mapped[str | None] = mapped_column(Text)
    approx_city: Mapped[str | None] = mapped_column(Text)
    approx_lat: Mapped[float | None] = mapped_column(Float)
    approx_lon: Mapped[float | None] = mapped_column(Float)
    approx_accuracy_km: Mapped[int | None] = mapped_column(Integer)

    # Precise location (from the browser)
    precise_lat: Mapped[float | None] = mapped_column(Float)
    precise_lon: Mapped[float | None] = mapped_column(Float)
    precise_accuracy_m: Mapped[float | None] = mapped_column(Float)
    precise_timestamp: Mapped[str | None] = mapped_column(Text)
    consented: Mapped[bool | None] = mapped_column(
        Boolean,
        server_default=false(),
    )

    # Device fingerprint (from the browser)
    device_platform: Mapped[str | None] = mapped_column(Text)
    device_vendor: Mapped[str | None] = mapped_column(Text)
    device_language: Mapped[str | None] = mapped_column(Text)
    device_languages: Mapped[str | None] = mapped_column(
        Text,
        comment="Preferred languages, comma-joined",
    )
    device_timezone: Mapped[str | None] = mapped_column(Text)
    device_hardware_concurrency: Mapped[int | None] = mapped_column(Integer)
    device_memory_gb: Mapped[float | None] = mapped_column(Float)
    device_screen_w: Mapped[int | None] = mapped_column(Integer)
    device_screen_h: Mapped[int | None] = mapped_column(Integer)
    device_color_depth: Mapped[int | None] = mapped_column(Integer)
    do_not_track: Mapped[bool | None] = mapped_column(Boolean)

    @property
    def has_precise_location(self) -> bool:
        return self.precise_lat is not None and self.precise_lon is not None

    def __repr__(self) -> str:
        return f"<Click {self.id} at={self.created_at} dest={self.dest_url}>"
