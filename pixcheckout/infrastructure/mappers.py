# pixcheckout/infrastructure/mappers.py
"""
Tradução entre as Entidades do Core e os formatos JSON dos serviços externos
(SlimPay e UTMify). Nenhuma regra de negócio aqui: apenas renomear e converter.
"""
from decimal import Decimal
from typing import Any, Dict

from pixcheckout.core.entities import (
    CobrancaPix, RespostaCobranca, ResumoOrdem, DadosPix, Transacao, RelatorioPedido,
    EventoWebhook, ClienteRastreamento, ProdutoRastreamento, ParametrosRastreamento,
)
from pixcheckout.core.normalizacao import para_centavos


def _decimal(valor) -> Decimal:
    return Decimal(str(valor if valor is not None else 0))


# ====================================================================
# SLIMPAY
# ====================================================================

def cobranca_para_payload(cobranca: CobrancaPix) -> Dict[str, Any]:
    """CobrancaPix -> corpo do POST /gateway/pix/receive."""
    cliente = cobranca.cliente
    dados_cliente = {
        "name": cliente.nome,
        "email": cliente.email,
        "phone": cliente.telefone,
        # Campo obrigatório no gateway: CPF apenas números
        "document": cliente.documento,
        "cpf": cliente.documento,
    }
    if cliente.endereco is not None:
        endereco = cliente.endereco
        dados_cliente["address"] = {
            "country": endereco.pais,
            "zipCode": endereco.cep,
            "state": endereco.estado,
            "city": endereco.cidade,
            "neighborhood": endereco.bairro,
            "street": endereco.rua,
            "number": endereco.numero,
            "complement": endereco.complemento or "",
        }

    payload = {
        "identifier": cobranca.identificador,
        "amount": float(cobranca.valor),
        "shippingFee": float(cobranca.taxa_frete),
        "discount": float(cobranca.desconto),
        "client": dados_cliente,
        "products": [
            {
                "id": item.id,
                "name": item.nome,
                "price": float(item.preco_unitario),
                "quantity": item.quantidade,
            }
            for item in cobranca.itens
        ],
        "metadata": dict(cobranca.metadata),
    }
    if cobranca.taxa_extra:
        payload["extraFee"] = float(cobranca.taxa_extra)
    if cobranca.url_callback:
        payload["callbackUrl"] = cobranca.url_callback
    return payload


def payload_para_resposta_cobranca(dados: Dict[str, Any]) -> RespostaCobranca:
    ordem = dados.get("order") or {}
    pix = dados.get("pix") or {}
    return RespostaCobranca(
        transacao_id=dados["transactionId"],
        status=dados.get("status", "PENDING"),
        taxa=_decimal(dados.get("fee")),
        ordem=ResumoOrdem(
            id=ordem.get("id", ""),
            valor=_decimal(ordem.get("amount")),
            moeda=ordem.get("currency", "BRL"),
        ),
        pix=DadosPix(qr_code=pix.get("qrCode", ""), expira_em=pix.get("expiresAt")),
    )


def payload_para_transacao(dados: Dict[str, Any]) -> Transacao:
    """Usado tanto na consulta de status quanto no corpo do webhook."""
    info_pix = dados.get("pixInformation")
    return Transacao(
        id=dados["id"],
        identificador=dados.get("identifier", ""),
        status=dados.get("status", ""),
        metodo_pagamento=dados.get("paymentMethod", ""),
        valor=_decimal(dados.get("amount")),
        moeda=dados.get("currency", "BRL"),
        data_criacao=dados.get("createdAt"),
        data_pagamento=dados.get("payedAt"),
        end_to_end_id=(info_pix or {}).get("endToEndId"),
        possui_info_pix=info_pix is not None,
    )


# ====================================================================
# UTMIFY
# ====================================================================

def relatorio_para_payload(relatorio: RelatorioPedido) -> Dict[str, Any]:
    """RelatorioPedido -> corpo do POST de pedidos do UTMify."""
    cliente = relatorio.cliente
    parametros = relatorio.parametros
    payload = {
        "orderId": relatorio.pedido_id,
        "platform": relatorio.plataforma,
        "paymentMethod": relatorio.metodo_pagamento,
        "status": relatorio.status,
        "createdAt": relatorio.data_criacao,
        "approvedDate": relatorio.data_aprovacao,
        "refundedAt": relatorio.data_reembolso,
        "customer": {
            "name": cliente.nome,
            "email": cliente.email,
            "phone": cliente.telefone,
            "document": cliente.documento,
            "country": cliente.pais or "BR",
        },
        "products": [
            {
                "id": produto.id,
                "name": produto.nome,
                "planId": None,
                "planName": None,
                "quantity": produto.quantidade,
                "priceInCents": produto.preco_centavos,
            }
            for produto in relatorio.produtos
        ],
        "trackingParameters": {
            "src": parametros.src,
            "sck": parametros.sck,
            "utm_source": parametros.utm_source,
            "utm_campaign": parametros.utm_campaign,
            "utm_medium": parametros.utm_medium,
            "utm_content": parametros.utm_content,
            "utm_term": parametros.utm_term,
        },
        "commission": {
            "totalPriceInCents": relatorio.comissao.total_centavos,
            "gatewayFeeInCents": relatorio.comissao.taxa_gateway_centavos,
            "userCommissionInCents": relatorio.comissao.comissao_usuario_centavos,
            "currency": relatorio.comissao.moeda,
        },
    }
    if relatorio.is_test:
        payload["isTest"] = True
    return payload


def payload_para_evento_webhook(dados: Dict[str, Any]) -> EventoWebhook:
    """Corpo do webhook da SlimPay -> EventoWebhook."""
    cliente = dados.get("client") or {}
    produtos = []
    for item in dados.get("orderItems") or []:
        produto = item.get("product") or {}
        produtos.append(ProdutoRastreamento(
            id=produto.get("externalId") or produto.get("id", ""),
            nome=produto.get("name", ""),
            # O gateway envia uma linha por unidade
            quantidade=1,
            preco_centavos=para_centavos(item.get("price") or 0),
        ))
    return EventoWebhook(
        evento=dados["event"],
        token=dados.get("token"),
        cliente=ClienteRastreamento(
            nome=cliente.get("name", ""),
            email=cliente.get("email", ""),
            telefone=cliente.get("phone"),
            documento=cliente.get("cpf") or cliente.get("cnpj") or "",
        ),
        transacao=payload_para_transacao(dados["transaction"]),
        produtos=produtos,
        parametros=ParametrosRastreamento.de_dict(dados.get("trackProps")),
    )
