"""
Despacho de tarefas de melhor esforço (envio de pedidos ao rastreamento).

A tarefa nunca propaga exceções nem resultados de falha para quem a despachou:
tudo é registrado em log e descartado. Não há fila persistente nem nova tentativa.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from pixcheckout.core.entities import ResultadoGateway
from pixcheckout.core.ports import IDespachante

logger = logging.getLogger(__name__)


def executar_isolado(descricao: str, tarefa: Callable[[], ResultadoGateway]) -> Optional[ResultadoGateway]:
    try:
        resultado = tarefa()
    except Exception:
        logger.exception("Falha em tarefa de melhor esforço: %s", descricao)
        return None

    if isinstance(resultado, ResultadoGateway) and not resultado.sucesso:
        logger.error("Tarefa de melhor esforço sem sucesso: %s -> %s", descricao, resultado.erro)
    else:
        logger.info("Tarefa de melhor esforço concluída: %s", descricao)
    return resultado


class DespachanteSincrono(IDespachante):
    """Executa na própria thread da requisição, ainda isolando as falhas."""

    def despachar(self, descricao, tarefa):
        executar_isolado(descricao, tarefa)


class DespachanteThread(IDespachante):
    """
    Executa em um pool de threads; a resposta HTTP não espera pela tarefa.
    No máximo `max_pendentes` tarefas ficam na fila do executor: acima disso
    (ex: UTMify fora do ar sob carga) a tarefa é descartada e registrada em log.
    """

    def __init__(self, max_workers: int = 2, max_pendentes: int = 1000,
                 executor: Optional[ThreadPoolExecutor] = None):
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="rastreamento"
        )
        self._vagas = threading.BoundedSemaphore(max_pendentes)

    def despachar(self, descricao, tarefa):
        if not self._vagas.acquire(blocking=False):
            logger.error("Fila de rastreamento cheia; tarefa descartada: %s", descricao)
            return
        try:
            futuro = self._executor.submit(executar_isolado, descricao, tarefa)
        except RuntimeError:
            self._vagas.release()
            # Pool já encerrado (desligamento do processo)
            logger.exception("Não foi possível agendar: %s", descricao)
            return
        futuro.add_done_callback(lambda _: self._vagas.release())

    def encerrar(self, aguardar: bool = True):
        self._executor.shutdown(wait=aguardar)


def criar_despachante(modo: str = "thread", max_workers: int = 2, max_pendentes: int = 1000) -> IDespachante:
    if (modo or "").strip().lower() == "sync":
        return DespachanteSincrono()
    return DespachanteThread(max_workers=max_workers, max_pendentes=max_pendentes)
