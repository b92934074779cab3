from django.apps import AppConfig


class InfrastructureConfig(AppConfig):
    name = 'pixcheckout.infrastructure'
    label = 'infrastructure' # Define um label para evitar conflitos de nomes
    verbose_name = 'Gateways SlimPay e UTMify'
    # Sem modelos: apenas clientes HTTP e o comando consultar_pix
