# SQLModel definitions — imported here to ensure metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .data_stream import DataStream  # noqa: F401
from .subscription import Subscription  # noqa: F401
from .data_package import DataPackage  # noqa: F401
from .notification import Notification  # noqa: F401
