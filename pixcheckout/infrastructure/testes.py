from datetime import datetime, timezone, timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from django.test import SimpleTestCase, override_settings

# Importamos as classes que queremos testar
from pixcheckout.infrastructure.gateways import (
    SlimPayGateway, UtmifyGateway, gerar_id_pedido, formatar_data_utmify,
)
from pixcheckout.infrastructure.despacho import (
    DespachanteSincrono, DespachanteThread, criar_despachante, executar_isolado,
)
from pixcheckout.infrastructure import mappers
from pixcheckout.core.entities import (
    Cliente, Endereco, ItemPedido, CobrancaPix, ClienteRastreamento, ProdutoRastreamento,
    Comissao, ParametrosRastreamento, ResultadoGateway,
)
from pixcheckout.core.exceptions import ConfiguracaoAusenteError, DadosInvalidosError


def _resposta_http(status_code=200, corpo=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = corpo if corpo is not None else {}
    response.text = str(corpo)
    return response


def _cobranca():
    return CobrancaPix(
        identificador='ORD-ABC-123456',
        valor=Decimal('25.00'),
        cliente=Cliente(
            nome='Maria Silva', email='maria@example.com', telefone='11999998888',
            documento='12345678901',
            endereco=Endereco(cep='12345-678', estado='SP', cidade='São Paulo',
                              bairro='Centro', rua='Rua A', numero='10'),
        ),
        itens=[ItemPedido(id='cad-1', nome='Caderno', preco_unitario=Decimal('10.00'), quantidade=2)],
        taxa_frete=Decimal('5.00'),
        metadata={'source': 'CometaPapelaria'},
        url_callback='https://loja.example.com/api/webhook/slimpay',
    )


RESPOSTA_COBRANCA = {
    'transactionId': 'tx-1',
    'status': 'OK',
    'fee': 0.5,
    'order': {'id': 'ord-slim-1', 'amount': 25.0, 'currency': 'BRL'},
    'pix': {'qrCode': '00020126...', 'expiresAt': '2025-01-01T12:30:00Z'},
}

RESPOSTA_TRANSACAO = {
    'id': 'tx-1',
    'identifier': 'ORD-ABC-123456',
    'status': 'COMPLETED',
    'paymentMethod': 'PIX',
    'amount': 25.0,
    'currency': 'BRL',
    'createdAt': '2025-01-01T12:00:00Z',
    'payedAt': '2025-01-01T12:05:00Z',
    'pixInformation': {'endToEndId': 'E123'},
}


# ====================================================================
# UTILITÁRIOS
# ====================================================================

class UtilitariosTestCase(SimpleTestCase):

    def test_id_do_pedido(self):
        pedido_id = gerar_id_pedido()
        prefixo, timestamp, aleatorio = pedido_id.split('-')
        self.assertEqual(prefixo, 'ORD')
        self.assertEqual(len(aleatorio), 6)
        self.assertEqual(pedido_id, pedido_id.upper())
        self.assertNotEqual(gerar_id_pedido(), gerar_id_pedido())

    def test_data_ausente(self):
        self.assertIsNone(formatar_data_utmify(None))
        self.assertIsNone(formatar_data_utmify(''))

    def test_data_formatada_em_utc(self):
        self.assertEqual(formatar_data_utmify('2025-01-01T12:05:00Z'), '2025-01-01 12:05:00')
        self.assertEqual(formatar_data_utmify('2025-01-01T09:05:00-03:00'), '2025-01-01 12:05:00')
        fuso = timezone(timedelta(hours=-3))
        formatada = formatar_data_utmify(datetime(2025, 1, 1, 9, 5, tzinfo=fuso))
        self.assertEqual(formatada, '2025-01-01 12:05:00')
        self.assertEqual(len(formatada), 19)

    def test_data_sem_fuso_e_tratada_como_utc(self):
        self.assertEqual(formatar_data_utmify(datetime(2025, 1, 1, 12, 0)), '2025-01-01 12:00:00')
        self.assertEqual(formatar_data_utmify('2025-01-01'), '2025-01-01 00:00:00')

    def test_data_invalida(self):
        with self.assertRaises(ValueError):
            formatar_data_utmify('ontem')


# ====================================================================
# SLIMPAY
# ====================================================================

class SlimPayGatewayTestCase(SimpleTestCase):

    def setUp(self):
        self.gateway = SlimPayGateway(
            api_url='https://slimpay.test/api/v1/', public_key='pk_teste',
            secret_key='sk_teste', timeout=5,
        )

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_criar_cobranca_com_sucesso(self, post_mock):
        post_mock.return_value = _resposta_http(200, RESPOSTA_COBRANCA)

        resultado = self.gateway.criar_cobranca_pix(_cobranca())

        self.assertTrue(resultado.sucesso)
        self.assertEqual(resultado.dados.transacao_id, 'tx-1')
        self.assertEqual(resultado.dados.pix.qr_code, '00020126...')
        self.assertEqual(resultado.dados.ordem.valor, Decimal('25.0'))

        args, kwargs = post_mock.call_args
        self.assertEqual(args[0], 'https://slimpay.test/api/v1/gateway/pix/receive')
        self.assertEqual(kwargs['headers']['x-public-key'], 'pk_teste')
        self.assertEqual(kwargs['headers']['x-secret-key'], 'sk_teste')
        payload = kwargs['json']
        self.assertEqual(payload['identifier'], 'ORD-ABC-123456')
        self.assertEqual(payload['amount'], 25.0)
        self.assertEqual(payload['client']['document'], '12345678901')
        self.assertEqual(payload['client']['address']['zipCode'], '12345-678')
        self.assertEqual(payload['callbackUrl'], 'https://loja.example.com/api/webhook/slimpay')

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_criar_cobranca_recusada(self, post_mock):
        post_mock.return_value = _resposta_http(
            422, {'message': 'Documento inválido', 'errorCode': 'INVALID_DOCUMENT'}
        )

        resultado = self.gateway.criar_cobranca_pix(_cobranca())

        self.assertFalse(resultado.sucesso)
        self.assertEqual(resultado.erro, 'Documento inválido')
        self.assertEqual(resultado.codigo_erro, 'INVALID_DOCUMENT')
        # Nenhuma nova tentativa
        self.assertEqual(post_mock.call_count, 1)

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_criar_cobranca_sem_conexao(self, post_mock):
        post_mock.side_effect = requests.exceptions.ConnectionError('falha de rede')

        resultado = self.gateway.criar_cobranca_pix(_cobranca())

        self.assertFalse(resultado.sucesso)
        self.assertEqual(post_mock.call_count, 1)

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_sem_credenciais_falha_antes_da_chamada(self, post_mock):
        gateway = SlimPayGateway(api_url='https://slimpay.test', public_key='', secret_key='sk', timeout=5)
        with self.assertRaises(ConfiguracaoAusenteError):
            gateway.criar_cobranca_pix(_cobranca())
        post_mock.assert_not_called()

    @patch('pixcheckout.infrastructure.gateways.requests.get')
    def test_buscar_transacao(self, get_mock):
        get_mock.return_value = _resposta_http(200, RESPOSTA_TRANSACAO)

        resultado = self.gateway.buscar_transacao(identificador='ORD-ABC-123456')

        self.assertTrue(resultado.sucesso)
        self.assertEqual(resultado.dados.id, 'tx-1')
        self.assertEqual(resultado.dados.end_to_end_id, 'E123')
        self.assertEqual(get_mock.call_args.kwargs['params'], {'clientIdentifier': 'ORD-ABC-123456'})

    @patch('pixcheckout.infrastructure.gateways.requests.get')
    def test_buscar_transacao_nao_encontrada(self, get_mock):
        get_mock.return_value = _resposta_http(404, {'message': 'Transaction not found'})

        resultado = self.gateway.buscar_transacao(transacao_id='tx-404')

        self.assertFalse(resultado.sucesso)
        self.assertEqual(resultado.erro, 'Transaction not found')

    def test_buscar_transacao_sem_identificador(self):
        with self.assertRaises(DadosInvalidosError):
            self.gateway.buscar_transacao()

    def test_verificar_token(self):
        self.assertTrue(self.gateway.verificar_token_webhook('abc', 'abc'))
        self.assertFalse(self.gateway.verificar_token_webhook('abd', 'abc'))
        self.assertFalse(self.gateway.verificar_token_webhook(None, 'abc'))
        with self.assertLogs('pixcheckout.infrastructure.gateways', level='WARNING'):
            self.assertTrue(self.gateway.verificar_token_webhook('qualquer', None))

    def test_verificar_token_com_acentos(self):
        self.assertTrue(self.gateway.verificar_token_webhook('ségredo', 'ségredo'))
        self.assertFalse(self.gateway.verificar_token_webhook('segrédo', 'segredo'))
        self.assertFalse(self.gateway.verificar_token_webhook('segredo', 'ségredo'))


# ====================================================================
# UTMIFY
# ====================================================================

class UtmifyGatewayTestCase(SimpleTestCase):

    def setUp(self):
        self.gateway = UtmifyGateway(
            api_url='https://utmify.test/orders', api_token='tok_teste',
            plataforma='CometaPapelaria', is_test=False, timeout=5,
        )
        self.argumentos = dict(
            pedido_id='ORD-ABC-123456',
            metodo_pagamento='pix',
            cliente=ClienteRastreamento(nome='Maria', email='maria@example.com',
                                        telefone='11999998888', documento='12345678901'),
            produtos=[ProdutoRastreamento(id='cad-1', nome='Caderno', quantidade=2, preco_centavos=1000)],
            comissao=Comissao(total_centavos=2500, taxa_gateway_centavos=0, comissao_usuario_centavos=2500),
            parametros=ParametrosRastreamento(utm_source='facebook'),
        )

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_enviar_pedido_aprovado_vira_pago(self, post_mock):
        post_mock.return_value = _resposta_http(200, {'OK': True})

        resultado = self.gateway.enviar_pedido(
            status='approved', data_aprovacao='2025-01-01T12:05:00Z', **self.argumentos
        )

        self.assertTrue(resultado.sucesso)
        args, kwargs = post_mock.call_args
        self.assertEqual(args[0], 'https://utmify.test/orders')
        self.assertEqual(kwargs['headers']['x-api-token'], 'tok_teste')
        payload = kwargs['json']
        self.assertEqual(payload['status'], 'paid')
        self.assertEqual(payload['platform'], 'CometaPapelaria')
        self.assertEqual(payload['approvedDate'], '2025-01-01 12:05:00')
        self.assertIsNone(payload['refundedAt'])
        self.assertEqual(len(payload['createdAt']), 19)
        self.assertEqual(payload['customer']['country'], 'BR')
        self.assertEqual(payload['products'][0]['priceInCents'], 1000)
        self.assertIsNone(payload['products'][0]['planId'])
        self.assertEqual(payload['trackingParameters']['utm_source'], 'facebook')
        self.assertIsNone(payload['trackingParameters']['src'])
        self.assertEqual(payload['commission']['currency'], 'BRL')
        self.assertNotIn('isTest', payload)

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_resposta_de_erro_nao_levanta_excecao(self, post_mock):
        post_mock.return_value = _resposta_http(500, {'message': 'erro interno'})

        resultado = self.gateway.enviar_pedido(status='waiting_payment', **self.argumentos)

        self.assertFalse(resultado.sucesso)
        self.assertIn('erro interno', resultado.resposta)

    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_modo_de_teste(self, post_mock):
        post_mock.return_value = _resposta_http(200, {})
        gateway = UtmifyGateway(api_url='https://utmify.test/orders', api_token='tok',
                                plataforma='CometaPapelaria', is_test=True, timeout=5)

        gateway.enviar_pedido(status='waiting_payment', **self.argumentos)

        self.assertTrue(post_mock.call_args.kwargs['json']['isTest'])

    @override_settings(UTMIFY_API_TOKEN='')
    @patch('pixcheckout.infrastructure.gateways.requests.post')
    def test_sem_token_falha_antes_da_chamada(self, post_mock):
        gateway = UtmifyGateway(api_url='https://utmify.test/orders', timeout=5)
        with self.assertRaises(ConfiguracaoAusenteError):
            gateway.enviar_pedido(status='paid', **self.argumentos)
        post_mock.assert_not_called()


# ====================================================================
# MAPPERS
# ====================================================================

class MapperWebhookTestCase(SimpleTestCase):

    def test_evento_de_webhook(self):
        evento = mappers.payload_para_evento_webhook({
            'event': 'TRANSACTION_PAID',
            'token': 'segredo',
            'client': {'name': 'Empresa', 'email': 'a@b.com', 'phone': '11', 'cnpj': '12345678000199'},
            'transaction': RESPOSTA_TRANSACAO,
            'orderItems': [
                {'price': 10.0, 'product': {'id': 'slim-1', 'externalId': 'cad-1', 'name': 'Caderno'}},
                {'price': 2.5, 'product': {'id': 'slim-2', 'name': 'Caneta'}},
            ],
            'trackProps': {'utm_source': 'google', 'src': ''},
        })

        self.assertEqual(evento.cliente.documento, '12345678000199')
        self.assertEqual([p.id for p in evento.produtos], ['cad-1', 'slim-2'])
        self.assertEqual([p.quantidade for p in evento.produtos], [1, 1])
        self.assertEqual(evento.produtos[1].preco_centavos, 250)
        self.assertEqual(evento.parametros.utm_source, 'google')
        self.assertIsNone(evento.parametros.src)
        self.assertEqual(evento.transacao.data_pagamento, '2025-01-01T12:05:00Z')

    def test_item_sem_preco_vale_zero(self):
        evento = mappers.payload_para_evento_webhook({
            'event': 'TRANSACTION_PAID',
            'transaction': RESPOSTA_TRANSACAO,
            'orderItems': [{'price': None, 'product': {'id': 'brinde-1', 'name': 'Brinde'}}],
        })
        self.assertEqual(evento.produtos[0].preco_centavos, 0)

    def test_transacao_com_informacao_pix_vazia(self):
        transacao = mappers.payload_para_transacao(dict(RESPOSTA_TRANSACAO, pixInformation={}))
        self.assertTrue(transacao.possui_info_pix)
        self.assertIsNone(transacao.end_to_end_id)

        transacao = mappers.payload_para_transacao(dict(RESPOSTA_TRANSACAO, pixInformation=None))
        self.assertFalse(transacao.possui_info_pix)


# ====================================================================
# DESPACHO
# ====================================================================

class DespachoTestCase(SimpleTestCase):

    def test_excecao_da_tarefa_e_registrada_e_descartada(self):
        def tarefa():
            raise RuntimeError('falhou')

        with self.assertLogs('pixcheckout.infrastructure.despacho', level='ERROR'):
            self.assertIsNone(executar_isolado('teste', tarefa))

    def test_resultado_sem_sucesso_e_registrado(self):
        with self.assertLogs('pixcheckout.infrastructure.despacho', level='ERROR'):
            executar_isolado('teste', lambda: ResultadoGateway(sucesso=False, erro='500'))

    def test_despachante_sincrono(self):
        tarefa = Mock(return_value=ResultadoGateway(sucesso=True))
        DespachanteSincrono().despachar('teste', tarefa)
        tarefa.assert_called_once_with()

    def test_despachante_em_thread(self):
        despachante = DespachanteThread(max_workers=1)
        tarefa = Mock(side_effect=RuntimeError('falhou'))

        despachante.despachar('teste', tarefa)
        despachante.encerrar(aguardar=True)

        tarefa.assert_called_once_with()

    def test_criar_despachante(self):
        self.assertIsInstance(criar_despachante('sync'), DespachanteSincrono)
        despachante = criar_despachante('thread', 1)
        self.assertIsInstance(despachante, DespachanteThread)
        despachante.encerrar()

    def test_fila_cheia_descarta_a_tarefa(self):
        executor = Mock()
        despachante = DespachanteThread(max_pendentes=1, executor=executor)

        despachante.despachar('primeira', Mock())
        with self.assertLogs('pixcheckout.infrastructure.despacho', level='ERROR'):
            despachante.despachar('segunda', Mock())

        self.assertEqual(executor.submit.call_count, 1)

        # Ao concluir, a vaga é liberada
        callback = executor.submit.return_value.add_done_callback.call_args[0][0]
        callback(None)
        despachante.despachar('terceira', Mock())
        self.assertEqual(executor.submit.call_count, 2)
