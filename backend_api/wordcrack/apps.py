from django.apps import AppConfig


class WordcrackConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "wordcrack"
    verbose_name = "WordCrack"
