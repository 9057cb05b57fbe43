from datetime import datetime, timezone

import pytest
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    func,
)

from videosync.ingest.models import Brand, SyncTuning

metadata = MetaData()

brands = Table(
    "brands",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", Text, nullable=False),
    Column("shop_cipher", Text),
)

creators = Table(
    "creators",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", Text, nullable=False),
)
Index("creators_username_lower_idx", func.lower(creators.c.username), unique=True)

creator_previous_usernames = Table(
    "creator_previous_usernames",
    metadata,
    Column("creator_id", Integer, ForeignKey("creators.id"), primary_key=True),
    Column("username", Text, primary_key=True),
)

brand_creators = Table(
    "brand_creators",
    metadata,
    Column("brand_id", Integer, ForeignKey("brands.id"), primary_key=True),
    Column("creator_id", Integer, ForeignKey("creators.id"), primary_key=True),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("brand_id", Integer, ForeignKey("brands.id"), nullable=False),
    Column("external_product_id", Text, nullable=False),
    Column("name", Text),
    UniqueConstraint("brand_id", "external_product_id"),
)

creator_videos = Table(
    "creator_videos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("brand_id", Integer, ForeignKey("brands.id"), nullable=False),
    Column("creator_id", Integer, ForeignKey("creators.id"), nullable=False),
    Column("external_video_id", Text, nullable=False),
    Column("title", Text),
    Column("video_url", Text),
    Column("posted_at", DateTime(timezone=True)),
    Column("gmv_cents", Integer),
    Column("gpm_cents", Integer),
    Column("items_sold", Integer),
    Column("impressions", Integer),
    Column("ctr", Numeric(8, 4)),
    Column("duration", Integer),
    Column("hash_tags", Text),
    Column("likes", Integer),
    Column("comments", Integer),
    Column("shares", Integer),
    Column("affiliate_orders", Integer),
    UniqueConstraint("brand_id", "external_video_id"),
)

creator_video_products = Table(
    "creator_video_products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("creator_video_id", Integer, ForeignKey("creator_videos.id"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.id")),
    Column("external_product_id", Text, nullable=False),
    UniqueConstraint("creator_video_id", "external_product_id"),
)

video_metric_snapshots = Table(
    "video_metric_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("brand_id", Integer, ForeignKey("brands.id"), nullable=False),
    Column("creator_video_id", Integer, ForeignKey("creator_videos.id")),
    Column("external_video_id", Text, nullable=False),
    Column("window_days", Integer, nullable=False),
    Column("snapshot_date", Date, nullable=False),
    Column("gmv_cents", Integer, nullable=False, default=0),
    Column("views", Integer, nullable=False, default=0),
    Column("items_sold", Integer, nullable=False, default=0),
    Column("gpm_cents", Integer),
    Column("ctr", Numeric(8, 4)),
    Column("source_run_id", Text),
    Column("raw_payload", Text),
    UniqueConstraint("brand_id", "external_video_id", "window_days", "snapshot_date"),
)

system_settings = Table(
    "system_settings",
    metadata,
    Column("brand_id", Integer, ForeignKey("brands.id"), primary_key=True),
    Column("key", Text, primary_key=True),
    Column("value", Text),
)


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, brand_id, event, payload=None):
        self.events.append((brand_id, event, dict(payload or {})))

    def names(self):
        return [event for _, event, _ in self.events]


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def engine():
    engine = create_engine("sqlite:///:memory:", future=True)
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(brands.insert(), [
            {"id": 1, "name": "HexCo", "shop_cipher": "ROW_hexco01"},
            {"id": 2, "name": "Lumi Threads", "shop_cipher": None},
        ])
    yield engine
    engine.dispose()


@pytest.fixture()
def brand():
    return Brand(id=1, name="HexCo", shop_cipher="ROW_hexco01")


@pytest.fixture()
def tuning():
    return SyncTuning(
        page_size=2,
        page_retry_base_delay_ms=0,
        max_page_attempts=3,
        requests_per_second=0,
        cooldown_seconds=600,
        backoff_initial_seconds=900,
        backoff_max_seconds=7200,
        windows=(90, 30),
    )


@pytest.fixture()
def events():
    return RecordingPublisher()


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
