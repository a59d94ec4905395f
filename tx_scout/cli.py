# === FILE: tx_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска TxScout через командную строку.

Использование:
  tx-scout TARGET_ADDRESS [MAX_WINDOWS] [TOTAL_PAGES]

Аргументы:
  TARGET_ADDRESS      Адрес контракта токена (0x + 40 hex)
  MAX_WINDOWS         Число параллельных слотов (default: 10)
  TOTAL_PAGES         Сколько страниц обойти максимум (default: 500)

Опции:
  --config PATH       Путь к YAML/JSON-конфигу (configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (только stderr, если не указан)
  --log-format FMT    Формат логирования
  --renderer NAME     http или browser (переопределяет конфиг)
  --json PATH         Сохранить JSON-отчёт в файл
  --pretty            Преформатировать JSON-вывод (отступ 2)
  --version, -v       Показать версию TxScout
  --help, -h          Показать справку

Пример:
  tx-scout 0x0023A1D0106185cBcC81b253a267b9d05015E0b7 10 500 --json hashes.json
"""
import sys
from pathlib import Path

import click

from tx_scout import __version__
from tx_scout.config import load_config
from tx_scout.engine import start_scrape
from tx_scout.logger import init_logging
from tx_scout.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def print_summary(report) -> None:
    click.echo('=== SCRAPING COMPLETED ===', err=True)
    for name, session in report.sessions.items():
        click.echo(f'{name.capitalize()} transactions: {len(session.hashes)}', err=True)
        if session.dropped_pages:
            dropped = ', '.join(map(str, session.dropped_pages))
            click.echo(f'  dropped pages ({len(session.dropped_pages)}): {dropped}', err=True)
    click.echo(f'Total time: {report.elapsed_seconds} seconds', err=True)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='TxScout, version %(version)s')
@click.argument('target_address')
@click.argument('max_windows', required=False, type=click.IntRange(min=1))
@click.argument('total_pages', required=False, type=click.IntRange(min=1))
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (только stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=None,
    help='Формат логирования (e.g. "%(asctime)s %(levelname)s %(message)s")'
)
@click.option(
    '--renderer', 'renderer',
    default=None,
    type=click.Choice(['http', 'browser']),
    help='Переопределить рендерер из конфига'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
def cli(target_address, max_windows, total_pages, config_path, log_level, log_file, log_format,
        renderer, json_output, pretty):
    """Собрать хеши транзакций токена TARGET_ADDRESS."""
    log_kwargs = {"log_format": log_format} if log_format else {}
    init_logging(level=log_level, log_file=str(log_file) if log_file else None, **log_kwargs)
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    if renderer:
        cfg = cfg.model_copy(update={"renderer": renderer})

    click.echo(f'Token: {target_address}', err=True)
    click.echo(f'Windows: {max_windows or cfg.max_windows}', err=True)
    click.echo(f'Pages: {total_pages or cfg.total_pages}', err=True)
    try:
        report = start_scrape(cfg, target_address, max_windows, total_pages)
    except Exception as e:
        print_error(f'Ошибка при сборе: {e}')

    print_summary(report)

    if json_output:
        try:
            saved = render_json(report, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved}', err=True)
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')
        return

    click.echo(report.json(pretty=pretty))


if __name__ == "__main__":
    cli()
