# pixcheckout/core/status.py
"""
Vocabulários de status.

O gateway de pagamento é dono da máquina de estados; aqui apenas traduzimos
o vocabulário dele (e os apelidos legados) para o conjunto canônico usado
internamente e pelo serviço de rastreamento.
"""

AGUARDANDO_PAGAMENTO = "waiting_payment"
PAGO = "paid"
RECUSADO = "refused"
REEMBOLSADO = "refunded"
ESTORNADO = "chargedback"

# Apelido legado aceito pelo cliente de rastreamento
APROVADO = "approved"

STATUS_CANONICOS = (AGUARDANDO_PAGAMENTO, PAGO, RECUSADO, REEMBOLSADO, ESTORNADO)

_STATUS_SLIMPAY = {
    "COMPLETED": PAGO,
    "PENDING": AGUARDANDO_PAGAMENTO,
    "FAILED": RECUSADO,
    "REJECTED": RECUSADO,
    "CANCELED": RECUSADO,
    "REFUNDED": REEMBOLSADO,
    "CHARGED_BACK": ESTORNADO,
}

_STATUS_UTMIFY = {
    "waiting_payment": AGUARDANDO_PAGAMENTO,
    "pending": AGUARDANDO_PAGAMENTO,
    "approved": PAGO,
    "paid": PAGO,
    "refused": RECUSADO,
    "cancelled": RECUSADO,
    "refunded": REEMBOLSADO,
    "chargeback": ESTORNADO,
}


def mapear_status_slimpay(status) -> str:
    """Status do gateway -> status interno. Valores desconhecidos viram aguardando pagamento."""
    return _STATUS_SLIMPAY.get(status, AGUARDANDO_PAGAMENTO)


def mapear_status_utmify(status) -> str:
    """Qualquer grafia de status -> status canônico do rastreamento."""
    return _STATUS_UTMIFY.get(status, AGUARDANDO_PAGAMENTO)
