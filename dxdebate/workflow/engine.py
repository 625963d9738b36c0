"""
Investigation engine: the top-level orchestrator for one diagnostic case.

Ties together:
- Case intake (free text to structured case information)
- The belief engine and evidence mapping
- Debate rounds and synthesis
- Patient questioning with suspend/resume
- Diagnostic test ordering
- The final assessment

The engine itself is stateless between calls; everything a case owns
lives in its InvestigationSession, so a suspended session can be resumed
later (or by another engine built with the same configuration).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from dxdebate.bayes.engine import BayesianDiagnosticEngine
from dxdebate.bayes.projection import project_differential
from dxdebate.debate.round_executor import RoundExecutor, synthesize
from dxdebate.knowledge.base import KnowledgeBase
from dxdebate.knowledge.testing import CatalogTestExecutor
from dxdebate.llm.oracle import OracleError, ReasoningOracle
from dxdebate.models.case import CaseState, InvestigationResult, PatientAnswer
from dxdebate.models.config import WorkflowConfig
from dxdebate.models.enums import DiagnosticPhase, InvestigationStatus, WorkflowAction
from dxdebate.models.progress import ProgressStage, ProgressUpdate
from dxdebate.utils.extraction import Extractor
from dxdebate.utils.parsing import format_case_information, format_differential
from dxdebate.utils.prompt_loader import render_prompt
from dxdebate.utils.protocols import LLMClientProtocol, TestExecutorProtocol
from dxdebate.workflow.evidence_mapper import EvidenceMapper, apply_evidence
from dxdebate.workflow.intake import CaseIntake, detect_gathered_information
from dxdebate.workflow.questions import QuestionGenerator, QuestionPolicy
from dxdebate.workflow.state_machine import next_action, phase_after

logger = logging.getLogger(__name__)


@dataclass
class InvestigationSession:
    """
    Everything one case owns.

    Attributes:
        state: The case state threading through the workflow
        beliefs: This case's belief engine (never shared between cases)
        executor: Round executor bound to this case's belief engine
        result: The most recent result returned to the caller
        requested_case_id: Id to use instead of a generated one
    """
    state: CaseState
    beliefs: BayesianDiagnosticEngine
    executor: RoundExecutor
    result: Optional[InvestigationResult] = None
    requested_case_id: Optional[str] = None

    @property
    def suspended(self) -> bool:
        return self.state.awaiting_user_input and not self.state.completed


class InvestigationEngine:
    """
    Runs the investigation loop for diagnostic cases.

    Usage:
        engine = InvestigationEngine(llm_client)
        session = engine.create_session(case_text)
        result = await engine.run(session)
        while result.status == "suspended":
            result = await engine.resume(session, answer)
    """

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        config: Optional[WorkflowConfig] = None,
        knowledge: Optional[KnowledgeBase] = None,
        test_executor: Optional[TestExecutorProtocol] = None,
    ):
        """
        Initialize the investigation engine.

        Args:
            llm_client: LLM client used for every oracle call
            config: Workflow configuration (defaults if omitted)
            knowledge: Domain knowledge; loaded from config.knowledge_path if omitted
            test_executor: Test ordering collaborator; catalog-based if omitted
        """
        self.config = config or WorkflowConfig()
        self.knowledge = knowledge or KnowledgeBase.from_config(self.config.knowledge_path)
        self.oracle = ReasoningOracle(
            llm_client,
            model=self.config.model,
            temperature=self.config.temperature,
            timeout_seconds=self.config.oracle_timeout_seconds,
        )
        self.extractor = Extractor(known_tests=list(self.knowledge.tests.keys()))
        self.policy = QuestionPolicy(self.config)
        self.intake = CaseIntake(self.oracle, self.extractor)
        self.question_generator = QuestionGenerator(self.oracle, self.config, self.policy, self.extractor)
        self.mapper = EvidenceMapper(self.knowledge)
        self.test_executor = test_executor or CatalogTestExecutor(self.knowledge)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def create_session(self, case_text: str, case_id: Optional[str] = None) -> InvestigationSession:
        """Fresh, uninitialized session for a case description."""
        beliefs = BayesianDiagnosticEngine(self.knowledge.likelihoods)
        state = CaseState(case_text=case_text or "", cost_budget=self.config.cost_budget)
        executor = RoundExecutor(self.oracle, beliefs, self.knowledge, self.config, self.extractor)
        return InvestigationSession(
            state=state, beliefs=beliefs, executor=executor, requested_case_id=case_id
        )

    async def investigate(
        self,
        case_text: str,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> tuple[InvestigationSession, InvestigationResult]:
        """Create a session and run it until it suspends or completes."""
        session = self.create_session(case_text)
        result = await self.run(session, progress_callback)
        return session, result

    async def resume(
        self,
        session: InvestigationSession,
        answer: str,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> InvestigationResult:
        """
        Supply the patient's answer and continue the investigation.

        A completed session is returned as-is.
        """
        if session.state.completed:
            logger.warning(f"Case {session.state.case_id} already completed; answer ignored")
            return self._result(session, InvestigationStatus.COMPLETED)

        logger.info(f"Resuming case {session.state.case_id} (interview round {session.state.interaction_round + 1})")
        session.state.received_answer = answer or ""
        return await self.run(session, progress_callback)

    async def run(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> InvestigationResult:
        """
        Drive the state machine until the case suspends or completes.

        Returns:
            InvestigationResult with status "suspended" (questions pending)
            or "completed"
        """
        while True:
            state = session.state
            if state.completed:
                return self._result(session, InvestigationStatus.COMPLETED)

            action = next_action(state, self.config, self.policy)
            # A received answer is still merged once the step limit is hit
            if (
                state.workflow_steps >= self.config.max_workflow_steps
                and action not in (WorkflowAction.PROCESS_RESPONSE, WorkflowAction.FINAL_ASSESSMENT)
            ):
                logger.warning(
                    f"Case {state.case_id} hit the {self.config.max_workflow_steps}-step limit; finalizing"
                )
                action = WorkflowAction.FINAL_ASSESSMENT

            state.workflow_steps += 1
            logger.debug(f"Step {state.workflow_steps}: {action.value} (phase {state.phase})")

            if action == WorkflowAction.INITIALIZE_CASE:
                await self.initialize_case(session, progress_callback)
            elif action == WorkflowAction.DELIBERATE:
                await self.deliberate(session, progress_callback)
            elif action == WorkflowAction.PROCESS_RESPONSE:
                await self.process_response(session, progress_callback)
            elif action == WorkflowAction.TEST_EXECUTION:
                self.execute_tests(session, progress_callback)
            elif action == WorkflowAction.PATIENT_INTERACTION:
                await self.ask_patient(session, progress_callback)
                return self._result(session, InvestigationStatus.SUSPENDED)
            elif action == WorkflowAction.FINAL_ASSESSMENT:
                await self.final_assessment(session, progress_callback)
                return self._result(session, InvestigationStatus.COMPLETED)
            else:
                raise ValueError(f"Unhandled workflow action: {action}")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def initialize_case(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> None:
        """
        One-time case setup: intake, belief priors and initial evidence.

        No-op if the case already has an id.
        """
        state = session.state
        if state.case_id is not None:
            logger.debug(f"Case {state.case_id} already initialized")
            return

        case_info = await self.intake.extract_case(state.case_text)
        if session.requested_case_id:
            case_info.patient_id = session.requested_case_id

        state.case_info = case_info
        state.case_id = case_info.patient_id
        state.phase = phase_after(WorkflowAction.INITIALIZE_CASE, state.phase)

        session.beliefs.reset()
        for profile in self.knowledge.conditions.values():
            session.beliefs.initialize_diagnosis(
                profile.condition_id,
                profile.prior,
                profile.classification_code,
            )

        applied = apply_evidence(state, session.beliefs, self.knowledge, self.mapper.from_case_info(case_info))
        if not applied:
            state.differential_diagnoses = project_differential(session.beliefs, self.knowledge)

        state.messages.append(f"Case {state.case_id}: {case_info.chief_complaint}")
        logger.info(
            f"Initialized case {state.case_id} with {len(session.beliefs)} conditions "
            f"and {applied} observation(s)"
        )
        self._report(progress_callback, session, ProgressStage.CASE_INITIALIZED,
                     f"Case {state.case_id} initialized", case_id=state.case_id)

    async def deliberate(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> None:
        """Run one debate turn in the current phase."""
        state = session.state
        if state.phase == DiagnosticPhase.PATIENT_INTERACTION.value:
            state.phase = state.return_phase or DiagnosticPhase.INFORMATION_GATHERING.value
            state.return_phase = None

        session.state = await session.executor.run_turn(state, progress_callback, self._percent(state))

    def execute_tests(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> None:
        """Order requested tests that fit the budget and apply any results."""
        state = session.state
        remaining = max(state.cost_budget - state.cumulative_cost, 0.0)
        tests = self.test_executor.execute(
            state.differential_diagnoses,
            remaining,
            list(state.pending_test_requests),
            [t.test_name for t in state.diagnostic_tests],
        )
        state.pending_test_requests = []

        evidence = []
        for test in tests:
            state.diagnostic_tests.append(test)
            state.cumulative_cost += test.cost
            state.messages.append(f"Ordered {test.test_name} (${test.cost:.0f})")
            observation = self.mapper.from_test(test)
            if observation is not None:
                evidence.append(observation)

        apply_evidence(state, session.beliefs, self.knowledge, evidence)
        session.state = synthesize(state, self.config)

        self._report(progress_callback, session, ProgressStage.TEST_EXECUTION,
                     f"Ordered {len(tests)} test(s)",
                     tests=[t.test_name for t in tests])

    async def ask_patient(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> None:
        """Generate questions (unless some are already pending) and suspend."""
        state = session.state
        if not state.pending_questions:
            questions = await self.question_generator.generate(state)
            state.pending_questions = questions
            state.question_history = state.question_history + questions

        if state.phase != DiagnosticPhase.PATIENT_INTERACTION.value:
            state.return_phase = state.phase
        state.phase = phase_after(WorkflowAction.PATIENT_INTERACTION, state.phase)
        state.awaiting_user_input = True

        logger.info(f"Case {state.case_id} suspended with {len(state.pending_questions)} question(s)")
        self._report(progress_callback, session, ProgressStage.QUESTIONS_PENDING,
                     f"{len(state.pending_questions)} question(s) for the patient",
                     questions=[q.text for q in state.pending_questions])

    async def process_response(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> None:
        """Merge the received answer into the case, turn it into evidence and clear the questions."""
        state = session.state
        answer = state.received_answer or ""
        state.received_answer = None

        questions = list(state.pending_questions)
        state.answers = state.answers + [PatientAnswer(question_ids=[q.id for q in questions], text=answer)]

        state.case_info = await self.intake.merge_answer(state.case_info, answer, questions)
        for tag in detect_gathered_information(answer, questions):
            if tag not in state.gathered_information:
                state.gathered_information.append(tag)

        evidence = self.mapper.from_text(answer) + self.mapper.from_case_info(state.case_info)
        applied = apply_evidence(state, session.beliefs, self.knowledge, evidence)

        state.pending_questions = []
        state.awaiting_user_input = False
        state.interaction_round += 1
        state.phase = state.return_phase or DiagnosticPhase.INFORMATION_GATHERING.value
        state.return_phase = None
        state.messages.append(f"Patient (round {state.interaction_round}): {answer.strip()}")

        if applied:
            session.state = synthesize(state, self.config)

        self._report(progress_callback, session, ProgressStage.RESPONSE_PROCESSED,
                     f"Answer processed ({applied} new observation(s))",
                     interaction_round=session.state.interaction_round)

    async def final_assessment(
        self,
        session: InvestigationSession,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> None:
        """Synthesize, write the closing narrative and mark the case completed."""
        state = synthesize(session.state, self.config)
        state.phase = phase_after(WorkflowAction.FINAL_ASSESSMENT, state.phase)
        state.pending_questions = []
        state.awaiting_user_input = False

        self._report(progress_callback, session, ProgressStage.FINAL_ASSESSMENT, "Writing final assessment")

        try:
            state.final_assessment = await self.oracle.invoke(self._final_prompt(state))
        except OracleError as e:
            logger.warning(f"Final assessment narrative unavailable, using summary: {e}")
            state.final_assessment = summarize_case(state, self.config.confidence_threshold)

        if not state.final_assessment.strip():
            state.final_assessment = summarize_case(state, self.config.confidence_threshold)

        state.completed = True
        session.state = state
        logger.info(
            f"Case {state.case_id} completed: "
            f"{state.final_diagnosis.condition if state.final_diagnosis else 'no diagnosis'} "
            f"({state.confidence_level:.2f}), cost ${state.cumulative_cost:.0f}"
        )
        self._report(progress_callback, session, ProgressStage.COMPLETE, "Investigation complete")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _final_prompt(self, state: CaseState) -> str:
        tests = "\n".join(
            f"- {t.test_name} (${t.cost:.0f}): {t.result or 'result pending'}"
            for t in state.diagnostic_tests
        ) or "None"
        return render_prompt(
            "final_assessment",
            case_information=format_case_information(state.case_info),
            differential=format_differential(state.differential_diagnoses),
            tests=tests,
            debate_rounds=state.debate_round,
            interaction_rounds=state.interaction_round,
            contribution_count=state.contribution_count,
            biases=", ".join(state.biases_detected) or "none",
            cumulative_cost=f"{state.cumulative_cost:.2f}",
            cost_budget=f"{state.cost_budget:.2f}",
            reasoning_quality=f"{state.reasoning_quality:.2f}",
        )

    def _percent(self, state: CaseState) -> int:
        return min(99, int(100 * state.workflow_steps / self.config.max_workflow_steps))

    def _report(
        self,
        progress_callback: Optional[Callable[[ProgressUpdate], None]],
        session: InvestigationSession,
        stage: ProgressStage,
        message: str,
        **detail,
    ) -> None:
        if progress_callback:
            percent = 100 if stage == ProgressStage.COMPLETE else self._percent(session.state)
            progress_callback(ProgressUpdate(stage=stage, message=message, percent=percent, detail=detail))

    def _result(self, session: InvestigationSession, status: InvestigationStatus) -> InvestigationResult:
        state = session.state
        result = InvestigationResult(
            case_id=state.case_id or "",
            status=status,
            phase=state.phase,
            pending_questions=list(state.pending_questions),
            differential_diagnoses=list(state.differential_diagnoses),
            final_diagnosis=state.final_diagnosis,
            confidence_level=state.confidence_level,
            cumulative_cost=state.cumulative_cost,
            reasoning_quality=state.reasoning_quality,
            evidence=list(state.applied_evidence),
            contributions=list(state.contributions),
            diagnostic_tests=list(state.diagnostic_tests),
            final_assessment=state.final_assessment,
        )
        session.result = result
        return result


def summarize_case(state: CaseState, confidence_threshold: float = 0.8) -> str:
    """Deterministic closing summary used when the oracle cannot write one."""
    lines = ["FINAL DIAGNOSTIC ASSESSMENT", ""]
    if state.final_diagnosis:
        code = f" ({state.final_diagnosis.classification_code})" if state.final_diagnosis.classification_code else ""
        lines.append(
            f"Primary diagnosis: {state.final_diagnosis.condition}{code} "
            f"at {state.final_diagnosis.probability * 100:.1f}% confidence"
        )
    else:
        lines.append("Primary diagnosis: undetermined")

    alternatives = [h for h in state.differential_diagnoses[1:4]]
    if alternatives:
        lines.append("Alternatives: " + ", ".join(
            f"{h.condition} ({h.probability * 100:.1f}%)" for h in alternatives
        ))

    lines.append(
        f"Cost: ${state.cumulative_cost:.2f} of ${state.cost_budget:.2f}; "
        f"{len(state.diagnostic_tests)} test(s) ordered"
    )
    lines.append(
        f"Process: {state.debate_round} debate round(s), {state.interaction_round} interview round(s), "
        f"{state.contribution_count} contribution(s), reasoning quality {state.reasoning_quality:.2f}"
    )
    if state.biases_detected:
        lines.append("Biases flagged: " + ", ".join(state.biases_detected))
    if state.confidence_level < confidence_threshold:
        lines.append("Confidence is below the decision threshold; further evaluation is recommended.")
    return "\n".join(lines)
