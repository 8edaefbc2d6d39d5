# ============================================================
# 📦 src/expansion_scoring/cli/run_expansion_job.py
# ============================================================

import argparse
import uuid
from datetime import datetime, timezone

from loguru import logger

from expansion_scoring.infrastructure.queue_factory import fila_expansao
from expansion_scoring.jobs import processar_lote_expansao


def main(argv=None):
    parser = argparse.ArgumentParser(description="Enfileira job assíncrono de pontuação de expansão")
    parser.add_argument("--stores", required=True, help="CSV de lojas (caminho visível ao worker)")
    parser.add_argument("--candidates", required=True, help="CSV de candidatos (caminho visível ao worker)")
    parser.add_argument("--country")
    parser.add_argument("--output")
    parser.add_argument("--fila", default="expansion_jobs", help="Nome da fila Redis")
    args = parser.parse_args(argv)

    job_id = f"expansion-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:6]}"
    fila = fila_expansao(args.fila)

    job = fila.enqueue(
        processar_lote_expansao,
        args.stores,
        args.candidates,
        args.country,
        args.output,
        job_id=job_id,
    )
    logger.success(f"📬 Job {job.id} enfileirado em '{args.fila}'")
    return job.id


if __name__ == "__main__":
    main()
