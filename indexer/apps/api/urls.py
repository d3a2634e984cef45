from rest_framework.routers import DefaultRouter

from .views import (
    BuildersProjectViewSet,
    BuildersUserViewSet,
    CountersViewSet,
    MorTransferViewSet,
    StakingEventViewSet,
)

router = DefaultRouter()
router.register("projects", BuildersProjectViewSet)
router.register("users", BuildersUserViewSet)
router.register("staking-events", StakingEventViewSet)
router.register("transfers", MorTransferViewSet)
router.register("counters", CountersViewSet)

urlpatterns = router.urls
