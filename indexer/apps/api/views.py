import logging

from django.db import DatabaseError
from django.http import JsonResponse
from rest_framework import serializers, viewsets

from indexer.apps.builders.models import BuildersProject, BuildersUser, Counters, StakingEvent
from indexer.apps.ingest.models import ChainCursor
from indexer.apps.tokens.models import MorTransfer
from .serializers import (
    BuildersProjectSerializer,
    BuildersUserSerializer,
    CountersSerializer,
    MorTransferSerializer,
    StakingEventSerializer,
)

logger = logging.getLogger(__name__)


class AddressField(serializers.CharField):
    def to_internal_value(self, data):
        return super().to_internal_value(data).lower()


class FilteredReadOnlyViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only list/detail with exact-match filters taken from the query string.
    A value the filter field rejects answers 400.
    """

    # query param -> (ORM lookup, field that parses the value)
    filter_params = {}

    def get_queryset(self):
        queryset = super().get_queryset()
        for param, (lookup, field) in self.filter_params.items():
            value = self.request.query_params.get(param)
            if not value:
                continue
            try:
                parsed = field.to_internal_value(value)
            except serializers.ValidationError as e:
                raise serializers.ValidationError({param: e.detail})
            queryset = queryset.filter(**{lookup: parsed})
        return queryset


class BuildersProjectViewSet(FilteredReadOnlyViewSet):
    queryset = BuildersProject.objects.all()
    serializer_class = BuildersProjectSerializer
    filter_params = {
        "admin": ("admin", AddressField()),
        "chain_id": ("chain_id", serializers.IntegerField()),
    }


class BuildersUserViewSet(FilteredReadOnlyViewSet):
    queryset = BuildersUser.objects.all()
    serializer_class = BuildersUserSerializer
    filter_params = {
        "project": ("project_id", serializers.CharField()),
        "address": ("address", AddressField()),
    }


class StakingEventViewSet(FilteredReadOnlyViewSet):
    queryset = StakingEvent.objects.all()
    serializer_class = StakingEventSerializer
    filter_params = {
        "project": ("project_id", serializers.CharField()),
        "user": ("user_address", AddressField()),
        "event_type": ("event_type", serializers.CharField()),
    }


class MorTransferViewSet(FilteredReadOnlyViewSet):
    queryset = MorTransfer.objects.all()
    serializer_class = MorTransferSerializer
    filter_params = {
        "from": ("from_address", AddressField()),
        "to": ("to_address", AddressField()),
        "is_staking_deposit": ("is_staking_deposit", serializers.BooleanField()),
        "is_staking_withdraw": ("is_staking_withdraw", serializers.BooleanField()),
    }


class CountersViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Counters.objects.all()
    serializer_class = CountersSerializer


def healthz(request):
    """Liveness: the process answers."""
    return JsonResponse({"status": "healthy"})


def readyz(request):
    """Readiness: the store answers and no chain is halted."""
    try:
        BuildersProject.objects.only("id").first()
        halted = list(
            ChainCursor.objects.filter(halted=True).values_list("chain_id", flat=True)
        )
    except DatabaseError as e:
        logger.error(f"Readiness check failed: {e}")
        return JsonResponse({"status": "not ready", "error": str(e)}, status=503)
    if halted:
        return JsonResponse(
            {"status": "not ready", "error": f"halted chains: {halted}", "halted_chains": halted},
            status=503,
        )
    return JsonResponse({"status": "ready"})
