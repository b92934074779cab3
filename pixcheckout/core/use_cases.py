# pixcheckout/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) do checkout PIX.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from pixcheckout.core.entities import (
    Cliente, Endereco, ItemPedido, CobrancaPix, PedidoPix, Transacao, EventoWebhook,
    ClienteRastreamento, ProdutoRastreamento, Comissao, ParametrosRastreamento,
)
from pixcheckout.core.exceptions import (
    DadosInvalidosError,
    CarrinhoVazioError,
    PagamentoFalhouError,
    TransacaoNaoEncontradaError,
    TokenWebhookInvalidoError,
)
from pixcheckout.core.normalizacao import (
    limpar_documento, limpar_telefone, formatar_cep, calcular_total, para_centavos,
)
from pixcheckout.core.ports import IGatewayPagamento, IGatewayRastreamento, IDespachante
from pixcheckout.core import status as st

logger = logging.getLogger(__name__)

METODO_PIX = "pix"
CAMPOS_OBRIGATORIOS_CLIENTE = ("nome", "email", "documento", "telefone")


# ====================================================================
# 1. CRIAÇÃO DA COBRANÇA PIX (CHECKOUT)
# ====================================================================

class CriarCobrancaPixUseCase:
    """
    Coordena o checkout: validação, normalização, cálculo do total,
    cobrança no gateway e envio (melhor esforço) ao rastreamento.
    """
    def __init__(self,
                 pagamento_gateway: IGatewayPagamento,
                 rastreamento_gateway: IGatewayRastreamento,
                 despachante: IDespachante,
                 gerador_id: Callable[[], str],
                 origem: str = "CometaPapelaria",
                 url_callback: Optional[str] = None):
        self.pagamento_gateway = pagamento_gateway
        self.rastreamento_gateway = rastreamento_gateway
        self.despachante = despachante
        self.gerador_id = gerador_id
        self.origem = origem
        self.url_callback = url_callback

    def _validar(self, dados_cliente: dict, itens: List[ItemPedido]):
        if any(not dados_cliente.get(campo) for campo in CAMPOS_OBRIGATORIOS_CLIENTE):
            raise DadosInvalidosError("Dados do cliente incompletos")
        if not itens:
            raise CarrinhoVazioError()

    def _montar_endereco(self, dados_endereco: Optional[dict]) -> Optional[Endereco]:
        if not dados_endereco:
            return None
        return Endereco(
            cep=formatar_cep(dados_endereco.get('cep', '')),
            estado=dados_endereco.get('estado', ''),
            cidade=dados_endereco.get('cidade', ''),
            bairro=dados_endereco.get('bairro', ''),
            rua=dados_endereco.get('rua', ''),
            numero=dados_endereco.get('numero', ''),
            complemento=dados_endereco.get('complemento') or "",
        )

    def executar(
        self,
        dados_cliente: dict,
        itens: List[ItemPedido],
        dados_endereco: Optional[dict] = None,
        frete: Optional[Decimal] = None,
        total_informado: Optional[Decimal] = None,
        parametros: Optional[ParametrosRastreamento] = None,
    ) -> PedidoPix:
        """Processa o checkout PIX."""
        # 1. Validação (nenhuma chamada externa antes disso)
        self._validar(dados_cliente, itens)

        # 2. Identificador do pedido
        pedido_id = self.gerador_id()

        # 3. Total recalculado no servidor
        valor_final = calcular_total(itens, frete)
        if total_informado is not None and Decimal(str(total_informado)) != valor_final:
            logger.warning(
                "Pedido %s: total informado (%s) diverge do calculado (%s). Usando o calculado.",
                pedido_id, total_informado, valor_final,
            )

        # 4-5. Normalização dos campos
        documento = limpar_documento(dados_cliente['documento'])
        telefone = limpar_telefone(dados_cliente['telefone'])
        cliente = Cliente(
            nome=dados_cliente['nome'],
            email=dados_cliente['email'],
            telefone=telefone,
            documento=documento,
            endereco=self._montar_endereco(dados_endereco),
        )
        parametros = parametros or ParametrosRastreamento()

        # 6. Cobrança no gateway
        cobranca = CobrancaPix(
            identificador=pedido_id,
            valor=valor_final,
            cliente=cliente,
            itens=list(itens),
            taxa_frete=frete or Decimal('0'),
            desconto=Decimal('0'),
            metadata={"source": self.origem, **parametros.presentes()},
            url_callback=self.url_callback,
        )
        resultado = self.pagamento_gateway.criar_cobranca_pix(cobranca)

        # 7. Falha do gateway vira erro do chamador
        if not resultado.sucesso or resultado.dados is None:
            logger.error("Pedido %s: gateway recusou a cobrança: %s", pedido_id, resultado.erro)
            raise PagamentoFalhouError(resultado.erro or "Erro ao gerar PIX", codigo_erro=resultado.codigo_erro)

        # 8. Rastreamento em segundo plano
        self._enviar_rastreamento(pedido_id, cliente, itens, valor_final, parametros)

        # 9. Resultado
        return PedidoPix(pedido_id=pedido_id, valor=valor_final, cobranca=resultado.dados)

    def _enviar_rastreamento(self, pedido_id, cliente: Cliente, itens, valor_final, parametros):
        total_centavos = para_centavos(valor_final)
        cliente_rastreamento = ClienteRastreamento(
            nome=cliente.nome,
            email=cliente.email,
            telefone=cliente.telefone,
            documento=cliente.documento,
        )
        produtos = [
            ProdutoRastreamento(
                id=item.id,
                nome=item.nome,
                quantidade=item.quantidade,
                preco_centavos=para_centavos(item.preco_unitario),
            )
            for item in itens
        ]
        comissao = Comissao(
            total_centavos=total_centavos,
            taxa_gateway_centavos=0,
            comissao_usuario_centavos=total_centavos,
        )

        def tarefa():
            return self.rastreamento_gateway.enviar_pedido(
                pedido_id=pedido_id,
                status=st.AGUARDANDO_PAGAMENTO,
                metodo_pagamento=METODO_PIX,
                cliente=cliente_rastreamento,
                produtos=produtos,
                comissao=comissao,
                parametros=parametros,
            )

        self.despachante.despachar(f"rastreamento pedido {pedido_id} ({st.AGUARDANDO_PAGAMENTO})", tarefa)


# ====================================================================
# 2. CONSULTA DE STATUS
# ====================================================================

class ConsultarStatusPixUseCase:
    """Consulta somente leitura de uma transação no gateway."""
    def __init__(self, pagamento_gateway: IGatewayPagamento):
        self.pagamento_gateway = pagamento_gateway

    def executar(self, transacao_id: Optional[str] = None, pedido_id: Optional[str] = None) -> Transacao:
        if not transacao_id and not pedido_id:
            raise DadosInvalidosError("transactionId ou orderId é obrigatório")

        resultado = self.pagamento_gateway.buscar_transacao(
            transacao_id=transacao_id or None,
            identificador=pedido_id or None,
        )
        if not resultado.sucesso or resultado.dados is None:
            raise TransacaoNaoEncontradaError(resultado.erro or "Transação não encontrada")
        return resultado.dados

    @staticmethod
    def status_publico(transacao: Transacao) -> str:
        """'paid' quando pago; caso contrário o status do gateway em minúsculas."""
        if st.mapear_status_slimpay(transacao.status) == st.PAGO:
            return st.PAGO
        return str(transacao.status).lower()


# ====================================================================
# 3. WEBHOOK DO GATEWAY
# ====================================================================

class ProcessarWebhookSlimPayUseCase:
    """
    Repassa ao rastreamento as mudanças de status notificadas pelo gateway.
    """
    EVENTO_CRIADA = "TRANSACTION_CREATED"
    EVENTO_PAGA = "TRANSACTION_PAID"
    EVENTO_CANCELADA = "TRANSACTION_CANCELED"
    EVENTO_REEMBOLSADA = "TRANSACTION_REFUNDED"

    _STATUS_POR_EVENTO = {
        EVENTO_PAGA: st.APROVADO,
        EVENTO_CANCELADA: st.RECUSADO,
        EVENTO_REEMBOLSADA: st.REEMBOLSADO,
    }

    def __init__(self,
                 pagamento_gateway: IGatewayPagamento,
                 rastreamento_gateway: IGatewayRastreamento,
                 despachante: IDespachante,
                 token_esperado: Optional[str] = None,
                 exigir_token: bool = False):
        self.pagamento_gateway = pagamento_gateway
        self.rastreamento_gateway = rastreamento_gateway
        self.despachante = despachante
        self.token_esperado = token_esperado or None
        self.exigir_token = exigir_token

    def validar_token(self, token_recebido: Optional[str]):
        """Levanta TokenWebhookInvalidoError quando o token não confere."""
        if not self.token_esperado:
            if self.exigir_token:
                logger.error("Webhook rejeitado: SLIMPAY_WEBHOOK_TOKEN não configurado e a verificação é obrigatória.")
                raise TokenWebhookInvalidoError()
            # Sem token esperado a verificação é ignorada (o gateway registra o aviso)
            self.pagamento_gateway.verificar_token_webhook(token_recebido, None)
            return
        if not self.pagamento_gateway.verificar_token_webhook(token_recebido, self.token_esperado):
            logger.error("Webhook rejeitado: token inválido.")
            raise TokenWebhookInvalidoError()

    def executar(self, evento: EventoWebhook) -> str:
        """Processa o evento e retorna o status interno da transação."""
        transacao = evento.transacao
        status_interno = st.mapear_status_slimpay(transacao.status)
        logger.info("Webhook %s recebido para o pedido %s (transação %s).",
                    evento.evento, transacao.identificador, transacao.id)

        if evento.evento == self.EVENTO_CRIADA:
            # Já reportado na criação da cobrança
            return status_interno

        status_rastreamento = self._STATUS_POR_EVENTO.get(evento.evento)
        if status_rastreamento is None:
            logger.warning("Evento de webhook desconhecido: %s", evento.evento)
            return status_interno

        total_centavos = para_centavos(transacao.valor)
        comissao = Comissao(
            total_centavos=total_centavos,
            taxa_gateway_centavos=0,
            comissao_usuario_centavos=total_centavos,
        )
        data_aprovacao = transacao.data_pagamento if evento.evento == self.EVENTO_PAGA else None
        data_reembolso = datetime.now(timezone.utc) if evento.evento == self.EVENTO_REEMBOLSADA else None

        def tarefa():
            return self.rastreamento_gateway.enviar_pedido(
                pedido_id=transacao.identificador,
                status=status_rastreamento,
                metodo_pagamento=str(transacao.metodo_pagamento).lower(),
                cliente=evento.cliente,
                produtos=evento.produtos,
                comissao=comissao,
                parametros=evento.parametros,
                data_aprovacao=data_aprovacao,
                data_reembolso=data_reembolso,
            )

        self.despachante.despachar(
            f"rastreamento pedido {transacao.identificador} ({status_rastreamento})", tarefa
        )
        return status_interno
