"""
Management command para consultar uma transação PIX diretamente na SlimPay.
Uso: python manage.py consultar_pix --transacao <id> | --pedido <ORD-...>
"""
from django.core.management.base import BaseCommand, CommandError

from pixcheckout.core import dependency_injection
from pixcheckout.core.exceptions import BaseErroCore
from pixcheckout.core.use_cases import ConsultarStatusPixUseCase


class Command(BaseCommand):
    help = 'Consulta o status de uma transação PIX na SlimPay.'

    def add_arguments(self, parser):
        parser.add_argument('--transacao', dest='transacao_id', help='ID da transação na SlimPay')
        parser.add_argument('--pedido', dest='pedido_id', help='Identificador do pedido (ORD-...)')

    def handle(self, *args, **options):
        uc = dependency_injection.get_consultar_status_pix_use_case()
        try:
            transacao = uc.executar(
                transacao_id=options.get('transacao_id'),
                pedido_id=options.get('pedido_id'),
            )
        except BaseErroCore as e:
            raise CommandError(e.message)

        self.stdout.write(f"Transação: {transacao.id}")
        self.stdout.write(f"Pedido:    {transacao.identificador}")
        self.stdout.write(f"Valor:     {transacao.valor} {transacao.moeda}")
        self.stdout.write(f"Criada em: {transacao.data_criacao or '-'}")
        self.stdout.write(f"Paga em:   {transacao.data_pagamento or '-'}")
        self.stdout.write(self.style.SUCCESS(f"Status:    {ConsultarStatusPixUseCase.status_publico(transacao)}"))
