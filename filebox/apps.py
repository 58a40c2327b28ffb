from django.apps import AppConfig
from django.core.signals import setting_changed


class FileboxConfig(AppConfig):
    name = 'filebox'
    verbose_name = 'Filebox'

    def ready(self):
        from .services import reset_service

        setting_changed.connect(reset_service)
