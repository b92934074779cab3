from django.apps import AppConfig


class PresentationConfig(AppConfig):
    name = 'pixcheckout.presentation'
    label = 'presentation' # Define um label para evitar conflitos de nomes
    verbose_name = 'API de Checkout PIX'
