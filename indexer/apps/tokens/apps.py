from django.apps import AppConfig


class TokensConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'indexer.apps.tokens'
    verbose_name = 'Tokens'

    def ready(self):
        import indexer.apps.tokens.handlers  # noqa
