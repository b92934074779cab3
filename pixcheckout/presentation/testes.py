import json
import threading
from decimal import Decimal
from io import StringIO
from unittest.mock import Mock, patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings
from rest_framework.test import APIClient

from pixcheckout.core import dependency_injection
from pixcheckout.core.apps import checar_token_webhook
from pixcheckout.core.entities import (
    PedidoPix, RespostaCobranca, ResumoOrdem, DadosPix, Transacao, ResultadoGateway,
)
from pixcheckout.core.exceptions import (
    PagamentoFalhouError, TransacaoNaoEncontradaError, ConfiguracaoAusenteError,
)
from pixcheckout.core.use_cases import ConsultarStatusPixUseCase
from pixcheckout.infrastructure.despacho import DespachanteSincrono

URL_CRIAR = '/api/pix/create'
URL_STATUS = '/api/pix/status'
URL_WEBHOOK = '/api/webhook/slimpay'

CREDENCIAIS = dict(
    SLIMPAY_API_URL='https://slimpay.test/api/v1',
    SLIMPAY_PUBLIC_KEY='pk_teste',
    SLIMPAY_SECRET_KEY='sk_teste',
    UTMIFY_API_URL='https://utmify.test/orders',
    UTMIFY_API_TOKEN='tok_teste',
    UTMIFY_IS_TEST=False,
    APP_URL='https://loja.example.com',
)


def _checkout(**alteracoes):
    corpo = {
        'customer': {
            'name': 'Maria Silva',
            'email': 'maria@example.com',
            'cpf': '123.456.789-01',
            'phone': '(11) 99999-8888',
        },
        'address': {
            'cep': '12345678', 'street': 'Rua A', 'number': '10', 'complement': '',
            'neighborhood': 'Centro', 'city': 'São Paulo', 'state': 'SP',
        },
        'items': [{'id': 'cad-1', 'name': 'Caderno', 'price': 10.00, 'quantity': 2}],
        'total': 1.00,
        'shipping': {'id': 'pac', 'name': 'PAC', 'price': 5.00, 'days': '5'},
        'trackingParams': {'utm_source': 'facebook', 'utm_campaign': 'volta-as-aulas'},
    }
    corpo.update(alteracoes)
    return corpo


def _resposta_http(status_code=200, corpo=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = corpo if corpo is not None else {}
    response.text = json.dumps(corpo)
    return response


RESPOSTA_COBRANCA = {
    'transactionId': 'tx-1',
    'status': 'OK',
    'fee': 0.5,
    'order': {'id': 'ord-slim-1', 'amount': 25.0, 'currency': 'BRL'},
    'pix': {'qrCode': '00020126...', 'expiresAt': '2025-01-01T12:30:00Z'},
}


def _webhook(evento='TRANSACTION_PAID', token='segredo'):
    return {
        'event': evento,
        'token': token,
        'client': {'name': 'Maria Silva', 'email': 'maria@example.com',
                   'phone': '11999998888', 'cpf': '12345678901'},
        'transaction': {
            'id': 'tx-1',
            'identifier': 'ORD-ABC-123456',
            'status': 'COMPLETED',
            'paymentMethod': 'PIX',
            'amount': 25.0,
            'currency': 'BRL',
            'createdAt': '2025-01-01T12:00:00Z',
            'payedAt': '2025-01-01T12:05:00Z',
        },
        'orderItems': [
            {'price': 10.0, 'product': {'id': 'slim-1', 'externalId': 'cad-1', 'name': 'Caderno'}},
            {'price': 10.0, 'product': {'id': 'slim-1', 'externalId': 'cad-1', 'name': 'Caderno'}},
        ],
        'trackProps': {'utm_source': 'facebook'},
    }


# ====================================================================
# CHECKOUT PIX (fluxo completo com HTTP simulado)
# ====================================================================

@override_settings(**CREDENCIAIS)
@patch('pixcheckout.core.dependency_injection.get_despachante', return_value=DespachanteSincrono())
@patch('pixcheckout.infrastructure.gateways.requests.post')
class CriarPixAPITestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()

    def _chamadas(self, post_mock, url):
        return [c for c in post_mock.call_args_list if c.args[0] == url]

    def test_checkout_com_sucesso(self, post_mock, _despachante):
        """
        Cenário: 2 x 10,00 + frete de 5,00 cobra 25,00, mesmo com total adulterado.
        """
        post_mock.side_effect = lambda url, **kwargs: (
            _resposta_http(200, RESPOSTA_COBRANCA) if 'slimpay' in url else _resposta_http(200, {'OK': True})
        )

        response = self.client.post(URL_CRIAR, _checkout(), format='json')

        self.assertEqual(response.status_code, 200)
        dados = response.json()
        self.assertTrue(dados['success'])
        self.assertEqual(dados['transactionId'], 'tx-1')
        self.assertTrue(dados['orderId'].startswith('ORD-'))
        self.assertEqual(dados['pix'], {'qrcode': '00020126...', 'expiresAt': '2025-01-01T12:30:00Z'})
        self.assertEqual(dados['order'], {'id': 'ord-slim-1', 'amount': 25.0})

        cobranca = self._chamadas(post_mock, 'https://slimpay.test/api/v1/gateway/pix/receive')[0].kwargs['json']
        self.assertEqual(cobranca['amount'], 25.0)
        self.assertEqual(cobranca['identifier'], dados['orderId'])
        self.assertEqual(cobranca['client']['document'], '12345678901')
        self.assertEqual(cobranca['client']['phone'], '11999998888')
        self.assertEqual(cobranca['client']['address']['zipCode'], '12345-678')
        self.assertEqual(cobranca['discount'], 0.0)
        self.assertEqual(cobranca['callbackUrl'], 'https://loja.example.com/api/webhook/slimpay')
        self.assertEqual(cobranca['metadata'], {
            'source': 'CometaPapelaria', 'utm_source': 'facebook', 'utm_campaign': 'volta-as-aulas',
        })

        relatorio = self._chamadas(post_mock, 'https://utmify.test/orders')[0].kwargs['json']
        self.assertEqual(relatorio['orderId'], dados['orderId'])
        self.assertEqual(relatorio['status'], 'waiting_payment')
        self.assertEqual(relatorio['commission']['totalPriceInCents'], 2500)

    def test_documento_enviado_como_document(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(200, RESPOSTA_COBRANCA)
        corpo = _checkout()
        corpo['customer'] = dict(corpo['customer'], cpf='', document='12345678901')

        response = self.client.post(URL_CRIAR, corpo, format='json')

        self.assertEqual(response.status_code, 200)

    def test_falha_no_rastreamento_mantem_sucesso(self, post_mock, _despachante):
        def responder(url, **kwargs):
            if 'utmify' in url:
                raise RuntimeError('UTMify fora do ar')
            return _resposta_http(200, RESPOSTA_COBRANCA)
        post_mock.side_effect = responder

        response = self.client.post(URL_CRIAR, _checkout(), format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

    def test_cliente_incompleto_sem_chamada_externa(self, post_mock, _despachante):
        for campo in ('name', 'email', 'cpf', 'phone'):
            with self.subTest(campo=campo):
                corpo = _checkout()
                corpo['customer'] = {k: v for k, v in corpo['customer'].items() if k != campo}
                response = self.client.post(URL_CRIAR, corpo, format='json')
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {'error': 'Dados do cliente incompletos'})
        post_mock.assert_not_called()

    def test_carrinho_vazio_sem_chamada_externa(self, post_mock, _despachante):
        response = self.client.post(URL_CRIAR, _checkout(items=[]), format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Carrinho vazio'})
        post_mock.assert_not_called()

    def test_cpf_invalido(self, post_mock, _despachante):
        corpo = _checkout()
        corpo['customer'] = dict(corpo['customer'], cpf='123.456')

        response = self.client.post(URL_CRIAR, corpo, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'CPF invalido. Deve conter 11 digitos.'})
        post_mock.assert_not_called()

    def test_quantidade_invalida(self, post_mock, _despachante):
        corpo = _checkout(items=[{'id': 'cad-1', 'name': 'Caderno', 'price': 'dez', 'quantity': 0}])

        response = self.client.post(URL_CRIAR, corpo, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('detalhes', response.json())
        post_mock.assert_not_called()

    def test_frete_sem_preco_conta_como_gratis(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(200, RESPOSTA_COBRANCA)
        corpo = _checkout(shipping={'id': 'retirada', 'name': 'Retirar na loja'})

        response = self.client.post(URL_CRIAR, corpo, format='json')

        self.assertEqual(response.status_code, 200)
        cobranca = post_mock.call_args_list[0].kwargs['json']
        self.assertEqual(cobranca['amount'], 20.0)
        self.assertEqual(cobranca['shippingFee'], 0.0)

    def test_gateway_recusa(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(400, {'message': 'Valor mínimo não atingido', 'errorCode': 'MIN'})

        response = self.client.post(URL_CRIAR, _checkout(), format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Valor mínimo não atingido'})
        # Sem cobrança, nada vai para o rastreamento
        self.assertEqual(post_mock.call_count, 1)

    @override_settings(SLIMPAY_SECRET_KEY='')
    def test_credenciais_ausentes(self, post_mock, _despachante):
        response = self.client.post(URL_CRIAR, _checkout(), format='json')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Erro interno ao processar pagamento'})
        post_mock.assert_not_called()


class CriarPixErrosAPITestCase(SimpleTestCase):
    """Tradução das exceções do Core para respostas HTTP."""

    def setUp(self):
        self.client = APIClient()
        self.uc_mock = Mock()
        patcher = patch('pixcheckout.core.dependency_injection.get_criar_cobranca_pix_use_case',
                        return_value=self.uc_mock)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_pagamento_falhou(self):
        self.uc_mock.executar.side_effect = PagamentoFalhouError('Erro ao gerar PIX')
        response = self.client.post(URL_CRIAR, _checkout(), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Erro ao gerar PIX'})

    def test_configuracao_ausente(self):
        self.uc_mock.executar.side_effect = ConfiguracaoAusenteError('sem chave')
        response = self.client.post(URL_CRIAR, _checkout(), format='json')
        self.assertEqual(response.status_code, 500)

    def test_argumentos_do_caso_de_uso(self):
        self.uc_mock.executar.return_value = PedidoPix(
            pedido_id='ORD-1',
            valor=Decimal('25.00'),
            cobranca=RespostaCobranca(
                transacao_id='tx-1', status='OK', taxa=Decimal('0'),
                ordem=ResumoOrdem(id='o-1', valor=Decimal('25.00')),
                pix=DadosPix(qr_code='qr', expira_em=None),
            ),
        )

        response = self.client.post(URL_CRIAR, _checkout(), format='json')

        self.assertEqual(response.status_code, 200)
        kwargs = self.uc_mock.executar.call_args.kwargs
        self.assertEqual(kwargs['dados_cliente']['documento'], '123.456.789-01')
        self.assertEqual(kwargs['dados_endereco']['cep'], '12345678')
        self.assertEqual(kwargs['frete'], Decimal('5.0'))
        self.assertEqual(kwargs['itens'][0].preco_unitario, Decimal('10.0'))
        self.assertEqual(kwargs['parametros'].utm_campaign, 'volta-as-aulas')


# ====================================================================
# CONSULTA DE STATUS
# ====================================================================

class StatusPixAPITestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()
        self.gateway_mock = Mock()
        patcher = patch(
            'pixcheckout.core.dependency_injection.get_consultar_status_pix_use_case',
            side_effect=lambda: ConsultarStatusPixUseCase(self.gateway_mock),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def _transacao(self, status='COMPLETED', com_pix=True):
        return Transacao(
            id='tx-1', identificador='ORD-ABC-123456', status=status, metodo_pagamento='PIX',
            valor=Decimal('25.00'), moeda='BRL', data_criacao='2025-01-01T12:00:00Z',
            data_pagamento='2025-01-01T12:05:00Z' if com_pix else None,
            end_to_end_id='E123' if com_pix else None, possui_info_pix=com_pix,
        )

    def test_sem_parametros(self):
        response = self.client.get(URL_STATUS)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'transactionId ou orderId é obrigatório'})
        self.gateway_mock.buscar_transacao.assert_not_called()

    def test_transacao_paga(self):
        self.gateway_mock.buscar_transacao.return_value = ResultadoGateway(sucesso=True, dados=self._transacao())

        response = self.client.get(URL_STATUS, {'orderId': 'ORD-ABC-123456'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            'transactionId': 'tx-1',
            'orderId': 'ORD-ABC-123456',
            'status': 'paid',
            'paymentMethod': 'PIX',
            'amount': 25.0,
            'currency': 'BRL',
            'createdAt': '2025-01-01T12:00:00Z',
            'paidAt': '2025-01-01T12:05:00Z',
            'pixInfo': {'endToEndId': 'E123'},
        })

    def test_transacao_pendente(self):
        self.gateway_mock.buscar_transacao.return_value = ResultadoGateway(
            sucesso=True, dados=self._transacao('PENDING', com_pix=False)
        )

        dados = self.client.get(URL_STATUS, {'transactionId': 'tx-1'}).json()

        self.assertEqual(dados['status'], 'pending')
        self.assertIsNone(dados['pixInfo'])

    def test_transacao_nao_encontrada(self):
        self.gateway_mock.buscar_transacao.return_value = ResultadoGateway(sucesso=False, erro=None)

        response = self.client.get(URL_STATUS, {'transactionId': 'tx-404'})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'error': 'Transação não encontrada'})


# ====================================================================
# WEBHOOK DA SLIMPAY
# ====================================================================

@override_settings(SLIMPAY_WEBHOOK_TOKEN='segredo', SLIMPAY_WEBHOOK_EXIGIR_TOKEN=False, **CREDENCIAIS)
@patch('pixcheckout.core.dependency_injection.get_despachante', return_value=DespachanteSincrono())
@patch('pixcheckout.infrastructure.gateways.requests.post')
class WebhookSlimPayAPITestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()

    def test_transacao_paga_repassa_ao_rastreamento(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(200, {'OK': True})

        response = self.client.post(URL_WEBHOOK, _webhook(), format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            'success': True, 'event': 'TRANSACTION_PAID', 'orderId': 'ORD-ABC-123456', 'status': 'paid',
        })
        relatorio = post_mock.call_args.kwargs['json']
        self.assertEqual(relatorio['status'], 'paid')
        self.assertEqual(relatorio['paymentMethod'], 'pix')
        self.assertEqual(relatorio['approvedDate'], '2025-01-01 12:05:00')
        self.assertEqual(len(relatorio['products']), 2)
        self.assertEqual(relatorio['products'][0]['id'], 'cad-1')
        self.assertEqual(relatorio['products'][0]['quantity'], 1)
        self.assertEqual(relatorio['customer']['document'], '12345678901')
        self.assertEqual(relatorio['trackingParameters']['utm_source'], 'facebook')

    def test_token_invalido(self, post_mock, _despachante):
        response = self.client.post(URL_WEBHOOK, _webhook(token='errado'), format='json')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'Invalid token'})
        post_mock.assert_not_called()

    def test_transacao_criada_nao_repassa(self, post_mock, _despachante):
        response = self.client.post(URL_WEBHOOK, _webhook('TRANSACTION_CREATED'), format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])
        post_mock.assert_not_called()

    def test_falha_no_rastreamento_nao_altera_a_resposta(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(500, {'message': 'erro'})

        response = self.client.post(URL_WEBHOOK, _webhook('TRANSACTION_REFUNDED'), format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(post_mock.call_args.kwargs['json']['status'], 'refunded')

    def test_json_invalido_vai_para_dead_letter(self, post_mock, _despachante):
        with self.assertLogs('pixcheckout.webhooks.dead_letter', level='ERROR') as logs:
            response = self.client.post(URL_WEBHOOK, '{"event": ', content_type='application/json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'error': 'Error processing webhook'})
        self.assertIn('{"event": ', logs.output[0])
        post_mock.assert_not_called()

    def test_corpo_incompleto_vai_para_dead_letter(self, post_mock, _despachante):
        corpo = _webhook()
        del corpo['transaction']

        with self.assertLogs('pixcheckout.webhooks.dead_letter', level='ERROR'):
            response = self.client.post(URL_WEBHOOK, corpo, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'error': 'Error processing webhook'})

    @override_settings(SLIMPAY_WEBHOOK_TOKEN='')
    def test_sem_token_configurado_aceita_com_aviso(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(200, {})

        with self.assertLogs('pixcheckout', level='WARNING'):
            response = self.client.post(URL_WEBHOOK, _webhook(token='qualquer'), format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

    def test_token_com_acento_diferente(self, post_mock, _despachante):
        response = self.client.post(URL_WEBHOOK, _webhook(token='segrédo'), format='json')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'Invalid token'})
        post_mock.assert_not_called()

    @override_settings(SLIMPAY_WEBHOOK_TOKEN='ségredo')
    def test_token_configurado_com_acento(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(200, {'OK': True})

        response = self.client.post(URL_WEBHOOK, _webhook(token='ségredo'), format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])
        self.assertEqual(post_mock.call_count, 1)

    def test_item_sem_preco_ainda_repassa(self, post_mock, _despachante):
        post_mock.return_value = _resposta_http(200, {'OK': True})
        corpo = _webhook()
        corpo['orderItems'][0]['price'] = None

        response = self.client.post(URL_WEBHOOK, corpo, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])
        produtos = post_mock.call_args.kwargs['json']['products']
        self.assertEqual([p['priceInCents'] for p in produtos], [0, 1000])

    @override_settings(SLIMPAY_WEBHOOK_TOKEN='', SLIMPAY_WEBHOOK_EXIGIR_TOKEN=True)
    def test_sem_token_configurado_e_obrigatorio(self, post_mock, _despachante):
        response = self.client.post(URL_WEBHOOK, _webhook(), format='json')

        self.assertEqual(response.status_code, 401)
        post_mock.assert_not_called()


# ====================================================================
# OPERAÇÃO
# ====================================================================

class OperacaoTestCase(SimpleTestCase):

    def test_health(self):
        response = APIClient().get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'ok'})

    @override_settings(SLIMPAY_WEBHOOK_TOKEN='')
    def test_checagem_do_token_do_webhook(self):
        avisos = checar_token_webhook(None)
        self.assertEqual([aviso.id for aviso in avisos], ['pixcheckout.W001'])

    @override_settings(SLIMPAY_WEBHOOK_TOKEN='segredo')
    def test_checagem_com_token(self):
        self.assertEqual(checar_token_webhook(None), [])

    @patch('pixcheckout.core.dependency_injection.get_consultar_status_pix_use_case')
    def test_comando_consultar_pix(self, factory_mock):
        factory_mock.return_value.executar.return_value = Transacao(
            id='tx-1', identificador='ORD-1', status='COMPLETED', metodo_pagamento='PIX',
            valor=Decimal('25.00'), moeda='BRL',
        )
        saida = StringIO()

        call_command('consultar_pix', '--pedido', 'ORD-1', stdout=saida)

        self.assertIn('tx-1', saida.getvalue())
        self.assertIn('paid', saida.getvalue())
        factory_mock.return_value.executar.assert_called_once_with(transacao_id=None, pedido_id='ORD-1')

    @patch('pixcheckout.core.dependency_injection.get_consultar_status_pix_use_case')
    def test_comando_transacao_nao_encontrada(self, factory_mock):
        factory_mock.return_value.executar.side_effect = TransacaoNaoEncontradaError()
        with self.assertRaises(CommandError):
            call_command('consultar_pix', '--transacao', 'tx-404', stdout=StringIO())

    @override_settings(RASTREAMENTO_DESPACHO='sync')
    def test_despachante_unico_entre_threads(self):
        criados = []
        barreira = threading.Barrier(8)

        def obter():
            barreira.wait()
            criados.append(dependency_injection.get_despachante())

        with patch.object(dependency_injection, '_despachante', None):
            threads = [threading.Thread(target=obter) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        self.assertEqual(len(criados), 8)
        self.assertEqual(len({id(despachante) for despachante in criados}), 1)
