from django.apps import AppConfig


class BuildersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "indexer.apps.builders"
    verbose_name = "Builders staking"

    def ready(self):
        import indexer.apps.builders.handlers  # noqa
