from django.apps import AppConfig


class BarracksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "barracks"
    verbose_name = "Barracks"

    def ready(self) -> None:
        # Import signals so the handlers are registered when the app starts.
        from . import signals  # noqa: F401
