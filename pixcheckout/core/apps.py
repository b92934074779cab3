# pixcheckout/core/apps.py

from django.apps import AppConfig
from django.conf import settings
from django.core import checks


def checar_token_webhook(app_configs, **kwargs):
    """Avisa na inicialização quando o webhook da SlimPay aceita qualquer token."""
    if getattr(settings, 'SLIMPAY_WEBHOOK_TOKEN', ''):
        return []
    if getattr(settings, 'SLIMPAY_WEBHOOK_EXIGIR_TOKEN', False):
        hint = "Todos os webhooks serão rejeitados com 401 até que o token seja configurado."
    else:
        hint = "Defina SLIMPAY_WEBHOOK_TOKEN ou ative SLIMPAY_WEBHOOK_EXIGIR_TOKEN."
    return [
        checks.Warning(
            "SLIMPAY_WEBHOOK_TOKEN não configurado: a verificação do webhook está desativada.",
            hint=hint,
            id='pixcheckout.W001',
        )
    ]


class CoreConfig(AppConfig):
    # O nome completo do path da aplicação
    name = 'pixcheckout.core'
    label = 'core'
    verbose_name = 'Camada de Entidades e Lógica (Core)'
    # A camada Core não possui modelos de banco de dados
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        checks.register(checar_token_webhook, checks.Tags.security)
