# pixcheckout/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Gateways,
Despachantes) DEVE seguir para se conectar à camada Core (Casos de Uso).
"""

from typing import Protocol, List, Optional, Callable
from abc import abstractmethod

from pixcheckout.core.entities import (
    CobrancaPix, ResultadoGateway, ClienteRastreamento, ProdutoRastreamento,
    Comissao, ParametrosRastreamento,
)


# ====================================================================
# 1. GATEWAYS (Serviços Externos)
# ====================================================================

class IGatewayPagamento(Protocol):
    """Protocolo para o gateway de pagamento PIX."""

    @abstractmethod
    def criar_cobranca_pix(self, cobranca: CobrancaPix) -> ResultadoGateway: ...

    @abstractmethod
    def buscar_transacao(
        self,
        transacao_id: Optional[str] = None,
        identificador: Optional[str] = None,
    ) -> ResultadoGateway: ...

    @abstractmethod
    def verificar_token_webhook(self, token_recebido: Optional[str], token_esperado: Optional[str]) -> bool: ...


class IGatewayRastreamento(Protocol):
    """Protocolo para o serviço de rastreamento de pedidos (atribuição de marketing)."""

    @abstractmethod
    def enviar_pedido(
        self,
        pedido_id: str,
        status: str,
        metodo_pagamento: str,
        cliente: ClienteRastreamento,
        produtos: List[ProdutoRastreamento],
        comissao: Comissao,
        parametros: Optional[ParametrosRastreamento] = None,
        data_aprovacao=None,
        data_reembolso=None,
    ) -> ResultadoGateway: ...


# ====================================================================
# 2. DESPACHO EM SEGUNDO PLANO
# ====================================================================

class IDespachante(Protocol):
    """Executa uma tarefa de melhor esforço. Falhas da tarefa nunca chegam ao chamador."""

    @abstractmethod
    def despachar(self, descricao: str, tarefa: Callable[[], ResultadoGateway]) -> None: ...
