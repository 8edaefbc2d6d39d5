# ============================================================
# 📦 src/expansion_scoring/cli/run_expansion.py
# ============================================================

import argparse
import asyncio
import json
import os

from loguru import logger

from expansion_scoring.application.expansion_use_case import executar_expansao
from expansion_scoring.domain.config import ConfigurationError, load_strategy_config
from expansion_scoring.domain.entities import RegionFilter
from expansion_scoring.infrastructure.csv_reader import ler_candidatos, ler_lojas


def validar_arquivo(path: str) -> str:
    if not os.path.isfile(path):
        raise argparse.ArgumentTypeError(f"Arquivo não encontrado: {path}")
    return path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Pontuação de candidatos a nova loja (multi-estratégia)")
    parser.add_argument("--stores", type=validar_arquivo, required=True, help="CSV de lojas existentes")
    parser.add_argument("--candidates", type=validar_arquivo, required=True, help="CSV de células candidatas")
    parser.add_argument("--country", help="País da análise (chave do cache de clusters)")
    parser.add_argument("--output", help="Arquivo JSON para gravar as sugestões")
    parser.add_argument("--db_cache", action="store_true", help="Usa cache persistente no PostgreSQL")
    parser.add_argument("--demographics_csv", help="CSV demográfico (sobrepõe EXPANSION_DEMOGRAPHIC_CSV_PATH)")
    args = parser.parse_args(argv)

    try:
        config = load_strategy_config()
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        raise SystemExit(2)

    if args.demographics_csv:
        config = config.with_changes(demographic_data_source="csv", demographic_csv_path=args.demographics_csv)

    logger.info(
        f"⚙️ Parâmetros | stores={args.stores} | candidates={args.candidates} | country={args.country or 'global'} "
        f"| db_cache={args.db_cache} | concorrência={config.max_parallel_strategies} "
        f"| timeout={config.strategy_timeout_ms}ms"
    )

    resumo = asyncio.run(
        executar_expansao(
            ler_lojas(args.stores),
            ler_candidatos(args.candidates),
            config,
            region=RegionFilter(country=args.country),
            usar_cache_db=args.db_cache,
            saida_json=args.output,
        )
    )
    print(json.dumps(resumo, ensure_ascii=False, indent=2))
    return resumo


if __name__ == "__main__":
    main()
