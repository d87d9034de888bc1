# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Iteration observers.

Callbacks are invoked with the solver at the end of every iteration. They
only read solver attributes; nothing they do feeds back into the algorithm.
"""

from abc import ABC, abstractmethod
from typing import List

from absl import logging
from jax import Array


class CallbackAbstract(ABC):
    """Base class for solver observers."""

    @abstractmethod
    def __call__(self, solver) -> None:
        ...


class CallbackVerbose(CallbackAbstract):
    """Logs one row of solver statistics per iteration.

    Columns: iteration, cost, stopping criterion, expected improvement,
    state and control regularization, step length and dynamic infeasibility.
    A header row is emitted every `header_every` iterations.

    Args:
        level: absl logging level of the rows.
        precision: Number of decimals printed.
        header_every: Period of the header row.
    """

    _COLUMNS = ('iter', 'cost', 'stop', 'grad', 'xreg', 'ureg', 'step', '||ffeas||')

    def __init__(self, level: int = logging.INFO, precision: int = 5,
                 header_every: int = 10):
        self.level = level
        self.precision = precision
        self.header_every = header_every
        width = precision + 7
        self._header = '  '.join(
            [f"{self._COLUMNS[0]:>5}"] + [f"{c:>{width}}" for c in self._COLUMNS[1:]]
        )

    def __call__(self, solver) -> None:
        if solver.iter % self.header_every == 0:
            logging.log(self.level, self._header)
        width = self.precision + 7
        values = (solver.cost, solver.stop, solver.d[0], solver.xreg,
                  solver.ureg, solver.steplength, solver.ffeas)
        row = '  '.join(
            [f"{solver.iter:>5d}"]
            + [f"{float(v):>{width}.{self.precision}e}" for v in values]
        )
        logging.log(self.level, row)


class CallbackLogger(CallbackAbstract):
    """Records per-iteration solver statistics in lists.

    Attributes:
        costs, stops, grads, steps, xregs, uregs, ffeas: One entry per
            iteration.
        xs, us: Trajectory held by the solver after the last iteration.
    """

    def __init__(self):
        self.costs: List[float] = []
        self.stops: List[float] = []
        self.grads: List[float] = []
        self.steps: List[float] = []
        self.xregs: List[float] = []
        self.uregs: List[float] = []
        self.ffeas: List[float] = []
        self.iterations: List[int] = []
        self.xs: List[Array] = []
        self.us: List[Array] = []

    def __call__(self, solver) -> None:
        self.iterations.append(solver.iter)
        self.costs.append(float(solver.cost))
        self.stops.append(float(solver.stop))
        self.grads.append(float(solver.d[0]))
        self.steps.append(float(solver.steplength))
        self.xregs.append(float(solver.xreg))
        self.uregs.append(float(solver.ureg))
        self.ffeas.append(float(solver.ffeas))
        self.xs = list(solver.xs)
        self.us = list(solver.us)
