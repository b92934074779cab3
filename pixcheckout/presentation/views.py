# pixcheckout/presentation/views.py

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import ParseError
from rest_framework.response import Response
from rest_framework.views import APIView

from pixcheckout.core import dependency_injection
from pixcheckout.core.exceptions import (
    DadosInvalidosError,
    CarrinhoVazioError,
    PagamentoFalhouError,
    TransacaoNaoEncontradaError,
    TokenWebhookInvalidoError,
    ConfiguracaoAusenteError,
)
from pixcheckout.core.use_cases import ConsultarStatusPixUseCase
from .serializers import CheckoutPixSerializer, StatusPixQuerySerializer, WebhookSlimPaySerializer

logger = logging.getLogger(__name__)
dead_letter_logger = logging.getLogger('pixcheckout.webhooks.dead_letter')


# ====================================================================
# VIEWS: Orquestram a requisição, a execução dos casos de uso e a resposta.
# As dependências são montadas a cada requisição pelo módulo de DI.
# ====================================================================

class CriarPixAPIView(APIView):
    """
    API View para o checkout PIX.
    Valida o carrinho, cria a cobrança na SlimPay e devolve o QR Code.
    """

    @extend_schema(request=CheckoutPixSerializer, summary="Cria uma cobrança PIX")
    def post(self, request):
        serializer = CheckoutPixSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'Dados inválidos', 'detalhes': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)

        criar_cobranca_uc = dependency_injection.get_criar_cobranca_pix_use_case()

        try:
            pedido = criar_cobranca_uc.executar(
                dados_cliente=serializer.to_dados_cliente(),
                itens=serializer.to_itens_entity(),
                dados_endereco=serializer.to_dados_endereco(),
                frete=serializer.to_frete(),
                total_informado=serializer.validated_data.get('total'),
                parametros=serializer.to_parametros_entity(),
            )
        except (DadosInvalidosError, CarrinhoVazioError, PagamentoFalhouError) as e:
            return Response({'error': e.message}, status=status.HTTP_400_BAD_REQUEST)
        except ConfiguracaoAusenteError:
            logger.exception("[PIX Create] Configuração ausente")
            return Response({'error': 'Erro interno ao processar pagamento'},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        cobranca = pedido.cobranca
        return Response({
            'success': True,
            'transactionId': cobranca.transacao_id,
            'orderId': pedido.pedido_id,
            'pix': {
                'qrcode': cobranca.pix.qr_code,
                'expiresAt': cobranca.pix.expira_em,
            },
            'order': {
                'id': cobranca.ordem.id,
                'amount': float(cobranca.ordem.valor),
            },
        }, status=status.HTTP_200_OK)


class StatusPixAPIView(APIView):
    """Consulta o status de um pagamento PIX pelo transactionId ou pelo orderId."""

    @extend_schema(parameters=[StatusPixQuerySerializer], summary="Consulta o status de um PIX")
    def get(self, request):
        query = StatusPixQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        consultar_status_uc = dependency_injection.get_consultar_status_pix_use_case()
        try:
            transacao = consultar_status_uc.executar(
                transacao_id=query.validated_data.get('transactionId'),
                pedido_id=query.validated_data.get('orderId'),
            )
        except DadosInvalidosError as e:
            return Response({'error': e.message}, status=status.HTTP_400_BAD_REQUEST)
        except TransacaoNaoEncontradaError as e:
            return Response({'error': e.message}, status=status.HTTP_404_NOT_FOUND)
        except ConfiguracaoAusenteError:
            logger.exception("[PIX Status] Configuração ausente")
            return Response({'error': 'Erro ao verificar status do pagamento'},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({
            'transactionId': transacao.id,
            'orderId': transacao.identificador,
            'status': ConsultarStatusPixUseCase.status_publico(transacao),
            'paymentMethod': transacao.metodo_pagamento,
            'amount': float(transacao.valor),
            'currency': transacao.moeda,
            'createdAt': transacao.data_criacao,
            'paidAt': transacao.data_pagamento,
            'pixInfo': {'endToEndId': transacao.end_to_end_id} if transacao.possui_info_pix else None,
        })


class WebhookSlimPayAPIView(APIView):
    """
    Recebe as notificações da SlimPay.
    Responde 200 mesmo quando o corpo não pode ser processado, para que o gateway
    não reenvie o evento; o corpo bruto fica no log de dead-letter.
    """

    def _registrar_falha(self, corpo_bruto, motivo):
        dead_letter_logger.error("Webhook não processado (%s): %s",
                                 motivo, corpo_bruto.decode('utf-8', errors='replace'))
        return Response({'error': 'Error processing webhook'}, status=status.HTTP_200_OK)

    @extend_schema(request=WebhookSlimPaySerializer, summary="Webhook da SlimPay")
    def post(self, request):
        # Lido antes de request.data para continuar disponível após o parse
        corpo_bruto = request.body

        try:
            dados = request.data
            token = dados.get('token') if isinstance(dados, dict) else None

            processar_webhook_uc = dependency_injection.get_processar_webhook_use_case()
            try:
                processar_webhook_uc.validar_token(token)
            except TokenWebhookInvalidoError as e:
                return Response({'error': e.message}, status=status.HTTP_401_UNAUTHORIZED)

            serializer = WebhookSlimPaySerializer(data=dados)
            if not serializer.is_valid():
                logger.error("[SlimPay Webhook] Corpo inválido: %s", serializer.errors)
                return self._registrar_falha(corpo_bruto, serializer.errors)

            evento = serializer.to_evento_entity()
            status_interno = processar_webhook_uc.executar(evento)
        except ParseError as e:
            logger.error("[SlimPay Webhook] JSON inválido: %s", e)
            return self._registrar_falha(corpo_bruto, 'JSON inválido')
        except Exception as e:
            logger.exception("[SlimPay Webhook] Erro ao processar o webhook")
            return self._registrar_falha(corpo_bruto, repr(e))

        return Response({
            'success': True,
            'event': evento.evento,
            'orderId': evento.transacao.identificador,
            'status': status_interno,
        }, status=status.HTTP_200_OK)


class HealthAPIView(APIView):
    """Verificação simples de disponibilidade."""

    def get(self, request):
        return Response({'status': 'ok'})
