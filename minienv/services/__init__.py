"""Registry of the services minienv can deploy."""

from typing import Dict, Optional, Type

from minienv.config import EnvConfig, MinikubeConfig
from minienv.shell import Shell
from minienv.services.base import Service
from minienv.services.airflow import Airflow
from minienv.services.dex import Dex
from minienv.services.dremio import Dremio
from minienv.services.elasticsearch import Elasticsearch
from minienv.services.minio import MinIO
from minienv.services.mongodb import MongoDB
from minienv.services.postfix import Postfix
from minienv.services.postgres import Postgres
from minienv.services.redpanda import Redpanda
from minienv.services.spark import Spark
from minienv.services.zincsearch import ZincSearch

SERVICES: Dict[str, Type[Service]] = {
    cls.name: cls
    for cls in (
        Postgres,
        MongoDB,
        MinIO,
        Dremio,
        Spark,
        Airflow,
        Redpanda,
        ZincSearch,
        Elasticsearch,
        Dex,
        Postfix,
    )
}


def get_service(
    name: str,
    config: EnvConfig,
    shell: Optional[Shell] = None,
    minikube_config: Optional[MinikubeConfig] = None,
) -> Service:
    """Instantiate a service by name.

    Raises:
        ValueError: If the service is unknown
    """
    try:
        cls = SERVICES[name]
    except KeyError:
        raise ValueError(f"Unknown service: {name}. Available services: {', '.join(SERVICES)}")
    return cls(config, shell=shell, minikube_config=minikube_config)
