from django.apps import AppConfig


class ChainConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "indexer.apps.chain"
    verbose_name = "Chain access"
