from rest_framework import serializers

from indexer.apps.builders.models import BuildersProject, BuildersUser, Counters, StakingEvent
from indexer.apps.tokens.models import MorTransfer


class BuildersProjectSerializer(serializers.ModelSerializer):
    class Meta:
        model = BuildersProject
        fields = (
            "id",
            "name",
            "admin",
            "total_staked",
            "total_users",
            "total_claimed",
            "minimal_deposit",
            "withdraw_lock_period_after_deposit",
            "claim_lock_end",
            "starts_at",
            "chain_id",
            "contract_address",
            "created_at",
            "created_at_block",
        )


class BuildersUserSerializer(serializers.ModelSerializer):
    project_id = serializers.CharField(read_only=True)

    class Meta:
        model = BuildersUser
        fields = (
            "id",
            "project_id",
            "address",
            "staked",
            "claimed",
            "last_stake",
            "claim_lock_end",
            "last_deposit",
            "virtual_deposited",
            "chain_id",
        )


class StakingEventSerializer(serializers.ModelSerializer):
    project_id = serializers.CharField(read_only=True)

    class Meta:
        model = StakingEvent
        fields = (
            "id",
            "project_id",
            "user_address",
            "event_type",
            "amount",
            "block_number",
            "block_timestamp",
            "transaction_hash",
            "log_index",
            "chain_id",
        )


class MorTransferSerializer(serializers.ModelSerializer):
    # exposed under the ERC-20 argument names
    to = serializers.CharField(source="to_address", read_only=True)

    class Meta:
        model = MorTransfer
        fields = (
            "id",
            "to",
            "value",
            "block_number",
            "block_timestamp",
            "transaction_hash",
            "log_index",
            "chain_id",
            "is_staking_deposit",
            "is_staking_withdraw",
            "related_project_id",
        )

    def get_fields(self):
        fields = super().get_fields()
        # "from" is a keyword, so it cannot be declared as a class attribute
        fields["from"] = serializers.CharField(source="from_address", read_only=True)
        return fields


class CountersSerializer(serializers.ModelSerializer):
    class Meta:
        model = Counters
        fields = (
            "id",
            "total_builders_projects",
            "total_subnets",
            "total_staked",
            "total_users",
            "last_updated",
        )
