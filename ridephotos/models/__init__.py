# Models package — import all models here so Alembic can discover them.

from ridephotos.models.profile import Profile  # noqa: F401
from ridephotos.models.photo import Photo  # noqa: F401
from ridephotos.models.purchase import Purchase, PurchaseItem  # noqa: F401
from ridephotos.models.entitlement import LeaderboardEntry, UnlockedPhoto  # noqa: F401
from ridephotos.models.cart import CartItem  # noqa: F401
from ridephotos.models.billing import (  # noqa: F401
    StripeCustomer,
    StripeOrder,
    StripeSubscription,
)
