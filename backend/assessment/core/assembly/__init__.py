"""
Goal-driven test assembly.

Each assessment goal has an assembler that turns a template blueprint into
an ordered list of question ids:

- ``OverviewAssembler``: balanced coverage of every active indicator
- ``JobFitAssembler``: delta testing against an O*NET benchmark
- ``TeamFitAssembler``: targets the competencies a team is missing

``TestAssemblerFactory`` maps goals to assemblers, and
``PsychometricItemSelector`` decides which questions of an indicator are
eligible based on their item statistics.
"""
