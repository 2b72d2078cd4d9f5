from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.accounts"
    label = "accounts"         # AUTH_USER_MODEL = "accounts.User"
    verbose_name = "People and roles"

    def ready(self):
        # login/logout/failed-login auditing
        from . import signals  # noqa: F401
