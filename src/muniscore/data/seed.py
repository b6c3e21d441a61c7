import logging
import random
from datetime import datetime, timedelta
from typing import Dict, Optional

from muniscore.data.storage import Database
from muniscore.logic.windows import reference_now

logger = logging.getLogger(__name__)

# Configuration
DIVISIONS = [
    "División de Salud",
    "División de Educación",
    "División de Infraestructura",
    "División de Seguridad",
    "División de Desarrollo Social",
    "División de Medio Ambiente",
]
MUNICIPALITIES = [
    "San Juan de los Morros",
    "Calabozo",
    "Valle de la Pascua",
    "Zaraza",
    "Altagracia de Orituco",
    "San José de Guaribe",
    "Tucupido",
    "Las Mercedes del Llano",
    "Santa María de Ipire",
    "Chaguaramas",
    "El Socorro",
    "Ortiz",
    "San Rafael de Laya",
    "Camaguán",
    "El Sombrero",
]
TASKS_PER_DIVISION = 4
DAYS_BACK = 75


def seed_database(db: Database, seed: Optional[int] = 7, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Populates an empty database with demo reference data.
    Includes:
    - tasks spread over the last ~2.5 months, some already past deadline
    - "reliable" units that deliver early and get rated
    - "laggard" units that deliver late or not at all
    - duplicate deliveries for the same (task, unit) pair
    """
    rng = random.Random(seed)
    current = now or reference_now()

    divisions = [db.add_division(name) for name in DIVISIONS]
    units = [db.add_municipality(name, code=f"GUA-{i:02d}") for i, name in enumerate(MUNICIPALITIES, start=1)]

    tasks = []
    for division in divisions:
        for n in range(1, TASKS_PER_DIVISION + 1):
            start = current - timedelta(days=rng.randint(5, DAYS_BACK))
            deadline = start + timedelta(days=rng.randint(3, 30))
            tasks.append(
                db.add_task(
                    name=f"{division.name.replace('División de ', '')} - Actividad {n}",
                    division_id=division.id,
                    start_time=start,
                    deadline_time=deadline,
                    retroactive=deadline < current,
                    now=current,
                )
            )

    deliveries = 0
    for index, unit in enumerate(units):
        # First third reliable, last third laggards
        if index < len(units) // 3:
            delivery_rate, lateness = 0.9, 0.3
        elif index >= 2 * len(units) // 3:
            delivery_rate, lateness = 0.4, 1.3
        else:
            delivery_rate, lateness = 0.7, 0.8

        for task in tasks:
            if rng.random() > delivery_rate:
                continue
            window = task.deadline_time - task.start_time
            copies = 2 if rng.random() < 0.1 else 1
            for _ in range(copies):
                submitted = task.start_time + window * rng.uniform(0.05, lateness)
                if submitted > current:
                    continue
                rating = rng.randint(55, 100) if rng.random() < 0.6 else None
                db.add_delivery(task.id, unit.id, submitted, quality_rating=rating)
                deliveries += 1

    result = {
        "divisions": len(divisions),
        "municipalities": len(units),
        "tasks": len(tasks),
        "deliveries": deliveries,
    }
    logger.info("seed complete", extra=result)
    return result
