"""
Topic provisioning for the kafka source and sink.
"""

import structlog
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import KafkaError as AIOKafkaError
from aiokafka.errors import TopicAlreadyExistsError, for_code

from ferry.connectors.kafka.config import KafkaClientSettings
from ferry.core.exceptions import KafkaError

logger = structlog.get_logger()


async def ensure_topics(
    client: KafkaClientSettings,
    topics: tuple[str, ...] | list[str],
    num_partitions: int = 1,
    replication: int = 1,
) -> list[str]:
    """
    Create any of ``topics`` that do not exist yet.

    An "already exists" answer is not an error.

    Returns:
        The topics that were created by this call.

    Raises:
        KafkaError: If the cluster is unreachable or rejects a topic.
    """
    admin = AIOKafkaAdminClient(**client.to_aiokafka_config(include_role=False))
    created: list[str] = []

    try:
        await admin.start()
        for topic in topics:
            new_topic = NewTopic(
                name=topic,
                num_partitions=num_partitions,
                replication_factor=replication,
            )
            try:
                response = await admin.create_topics([new_topic])
            except TopicAlreadyExistsError:
                logger.info("kafka_topic_exists", topic=topic)
                continue

            for topic_error in response.topic_errors:
                name, code = topic_error[0], topic_error[1]
                if code == 0:
                    created.append(name)
                    logger.info(
                        "kafka_topic_created",
                        topic=name,
                        num_partitions=num_partitions,
                        replication=replication,
                    )
                elif for_code(code) is TopicAlreadyExistsError:
                    logger.info("kafka_topic_exists", topic=name)
                else:
                    raise KafkaError(
                        f"Failed to create Kafka topic {name} with error: {for_code(code).__name__}",
                        topic=name,
                        operation="create_topic",
                        details={"error_code": code},
                    )
    except AIOKafkaError as e:
        raise KafkaError(
            f"Failed to create Kafka topics: {e}",
            operation="create_topic",
            details={"brokers": client.brokers, "topics": list(topics)},
        ) from e
    finally:
        await admin.close()

    return created
