# Models package — import the mapped tables here so create_all() sees them.

from referral_portal.models.customer import Customer  # noqa: F401
from referral_portal.models.referral import Referral  # noqa: F401
