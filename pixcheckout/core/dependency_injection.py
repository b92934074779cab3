# pixcheckout/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases com suas dependências de Gateways
concretos da camada de Infraestrutura, a partir das configurações do Django.
"""
import atexit
import threading

from django.conf import settings

from pixcheckout.infrastructure.gateways import SlimPayGateway, UtmifyGateway, gerar_id_pedido
from pixcheckout.infrastructure.despacho import criar_despachante
from .use_cases import (
    CriarCobrancaPixUseCase,
    ConsultarStatusPixUseCase,
    ProcessarWebhookSlimPayUseCase,
)

CAMINHO_WEBHOOK = "/api/webhook/slimpay"

_despachante = None
_despachante_lock = threading.Lock()


# ====================================================================
# Gateways e despacho
# ====================================================================

def get_pagamento_gateway() -> SlimPayGateway:
    return SlimPayGateway()

def get_rastreamento_gateway() -> UtmifyGateway:
    return UtmifyGateway()

def get_despachante():
    """O pool de threads é único por processo."""
    global _despachante
    if _despachante is None:
        with _despachante_lock:
            if _despachante is None:
                despachante = criar_despachante(
                    settings.RASTREAMENTO_DESPACHO,
                    settings.RASTREAMENTO_MAX_WORKERS,
                    settings.RASTREAMENTO_MAX_PENDENTES,
                )
                if hasattr(despachante, "encerrar"):
                    # Envios pendentes terminam antes do processo sair
                    atexit.register(despachante.encerrar)
                _despachante = despachante
    return _despachante

def get_url_callback() -> str:
    return f"{settings.APP_URL.rstrip('/')}{CAMINHO_WEBHOOK}"


# ====================================================================
# Use Cases
# ====================================================================

def get_criar_cobranca_pix_use_case() -> CriarCobrancaPixUseCase:
    return CriarCobrancaPixUseCase(
        pagamento_gateway=get_pagamento_gateway(),
        rastreamento_gateway=get_rastreamento_gateway(),
        despachante=get_despachante(),
        gerador_id=gerar_id_pedido,
        origem=settings.CHECKOUT_ORIGEM,
        url_callback=get_url_callback(),
    )

def get_consultar_status_pix_use_case() -> ConsultarStatusPixUseCase:
    return ConsultarStatusPixUseCase(get_pagamento_gateway())

def get_processar_webhook_use_case() -> ProcessarWebhookSlimPayUseCase:
    return ProcessarWebhookSlimPayUseCase(
        pagamento_gateway=get_pagamento_gateway(),
        rastreamento_gateway=get_rastreamento_gateway(),
        despachante=get_despachante(),
        token_esperado=settings.SLIMPAY_WEBHOOK_TOKEN,
        exigir_token=settings.SLIMPAY_WEBHOOK_EXIGIR_TOKEN,
    )
