from django.apps import AppConfig


class AuthappConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "authapp"
    verbose_name = "Users & Spaces"
