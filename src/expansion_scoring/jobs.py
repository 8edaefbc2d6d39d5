# ============================================================
# 📦 src/expansion_scoring/jobs.py
# ============================================================

import asyncio

from loguru import logger
from rq import get_current_job

from expansion_scoring.application.expansion_use_case import executar_expansao
from expansion_scoring.domain.config import load_strategy_config
from expansion_scoring.domain.entities import RegionFilter
from expansion_scoring.infrastructure.csv_reader import ler_candidatos, ler_lojas


# ============================================================
# 🚀 Job RQ: pontuação de um lote de candidatos
# ============================================================
def processar_lote_expansao(stores_csv, candidates_csv, country=None, saida_json=None, usar_cache_db=True):
    """
    Executa a pontuação de expansão de forma assíncrona (via RQ).
    Retorna o resumo do lote ou o erro ocorrido.
    """
    job = get_current_job()
    job_id = job.id if job else "local"
    logger.info(f"🚀 Iniciando job de expansão ({job_id}) | lojas={stores_csv} | candidatos={candidates_csv}")

    try:
        config = load_strategy_config()
        resumo = asyncio.run(
            executar_expansao(
                ler_lojas(stores_csv),
                ler_candidatos(candidates_csv),
                config,
                region=RegionFilter(country=country),
                usar_cache_db=usar_cache_db,
                saida_json=saida_json,
            )
        )
    except Exception as e:
        logger.exception(f"💥 Job de expansão {job_id} falhou: {e}")
        return {"status": "error", "job_id": job_id, "error": str(e)}

    if job:
        job.meta["resumo"] = resumo
        job.save_meta()

    logger.success(f"✅ Job de expansão {job_id} concluído | sucesso={resumo['success_rate']}%")
    return {"status": "done", "job_id": job_id, "resumo": resumo}
