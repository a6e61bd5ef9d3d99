"""Workflow builder and regeneration entry points for storyboard generation

Full run: planner -> renderer (loops once per frame) -> assemble.
Regeneration re-enters at the plan agent (text) or one frame render.
"""

import logging
import time
from typing import Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from ..agents.agent_frame import render_frame
from ..agents.agent_plan import generate_plan
from ..agents.base import ProgressCallback, ProgressReporter, format_time
from ..agents.util_image import make_placeholder
from ..clients.base import GenerationBackend
from .config import CHAIN_FRAMES, ENABLE_PLAN_RULE_CHECK
from .errors import MissingAssetError, UpstreamError
from .models import GenerationRequest, StoryboardFrame, StoryboardResult
from .state import StoryboardState, WorkflowStatus

logger = logging.getLogger(__name__)

# Frame failures that become placeholders during a full run.
# AuthenticationError is not among them and always aborts.
NON_FATAL_FRAME_ERRORS = (UpstreamError, MissingAssetError)


def route_after_render(state: StoryboardState) -> str:
    """Route after rendering a frame: loop until every planned frame exists"""
    remaining = len(state["plan"].frames) - state["current_index"]
    if remaining > 0:
        return "renderer"
    logger.info(f"[Workflow Router] All {len(state['frames'])} frames rendered, assembling")
    return "assemble"


def _reporter(config: RunnableConfig) -> ProgressReporter:
    return config["configurable"]["progress"]


class StoryboardWorkflow:
    """
    Orchestrates plan generation and sequential frame rendering.

    One instance wraps one generation backend; the compiled graph is reused
    across runs. Progress is reported at the start of planning (step 1) and
    after every frame (step i + 1), so steps run strictly 1..frame_count + 1.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        chain_frames: bool = CHAIN_FRAMES,
        enforce_product_rule: bool = ENABLE_PLAN_RULE_CHECK
    ):
        self.backend = backend
        self.chain_frames = chain_frames
        self.enforce_product_rule = enforce_product_rule
        self.graph = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(StoryboardState)

        workflow.add_node("planner", self.planner_node)
        workflow.add_node("renderer", self.renderer_node)
        workflow.add_node("assemble", self.assemble_node)

        workflow.set_entry_point("planner")
        workflow.add_edge("planner", "renderer")
        workflow.add_conditional_edges(
            "renderer",
            route_after_render,
            {
                "renderer": "renderer",
                "assemble": "assemble"
            }
        )
        workflow.add_edge("assemble", END)

        compiled_workflow = workflow.compile()
        logger.info("[Workflow] Storyboard workflow compiled")
        return compiled_workflow

    async def planner_node(self, state: StoryboardState, config: RunnableConfig) -> dict:
        request = state["request"]
        await _reporter(config).report("Analyzing the product and drafting the story concept...", 1)

        plan = await generate_plan(request, self.backend, enforce_product_rule=self.enforce_product_rule)
        return {
            "plan": plan,
            "status": WorkflowStatus.RENDERING.value,
            "current_index": 0,
            "frames": [],
            "failed_frames": []
        }

    async def renderer_node(self, state: StoryboardState, config: RunnableConfig) -> dict:
        request = state["request"]
        plan = state["plan"]
        index = state["current_index"]
        frame_plan = plan.frames[index]
        frame_id = index + 1
        frames = state["frames"]

        reference_images = request.reference_images()
        chained = False
        if self.chain_frames and frames and not frames[-1].placeholder:
            reference_images = reference_images + [frames[-1].image_url]
            chained = True

        failed_frames = state["failed_frames"]
        try:
            image_url = await render_frame(
                frame_plan,
                request,
                self.backend,
                reference_images=reference_images,
                chained=chained,
                frame_id=frame_id
            )
            placeholder = False
        except NON_FATAL_FRAME_ERRORS as e:
            logger.warning(f"[Workflow] Frame {frame_id} failed ({type(e).__name__}: {e}), using placeholder")
            image_url = make_placeholder(frame_id, request.aspect_ratio)
            placeholder = True
            failed_frames = failed_frames + [frame_id]

        frame = StoryboardFrame(
            id=frame_id,
            image_url=image_url,
            script=frame_plan.script,
            camera_angle=frame_plan.camera_angle,
            scene_description=frame_plan.scene_description,
            placeholder=placeholder
        )

        message = f"Rendered frame {frame_id} of {len(plan.frames)}"
        if placeholder:
            message += " (placeholder)"
        await _reporter(config).report(message, frame_id + 1)

        return {
            "frames": frames + [frame],
            "current_index": index + 1,
            "failed_frames": failed_frames
        }

    async def assemble_node(self, state: StoryboardState) -> dict:
        plan = state["plan"]
        result = StoryboardResult(
            hook=plan.hook,
            full_script=plan.full_script,
            music_prompt=plan.music_prompt,
            frames=state["frames"]
        )
        if state["failed_frames"]:
            logger.warning(f"[Workflow] Storyboard complete with placeholder frames: {state['failed_frames']}")
        return {"result": result, "status": WorkflowStatus.COMPLETE.value}

    async def generate(
        self,
        request: GenerationRequest,
        on_progress: Optional[ProgressCallback] = None
    ) -> StoryboardResult:
        """
        Run the full pipeline: plan, then render every frame in order.

        Args:
            request: Validated GenerationRequest
            on_progress: Callback (message, current_step, total_steps)

        Returns:
            StoryboardResult with exactly request.frame_count frames, ids 1..N

        Raises:
            AuthenticationError: Credential rejected at any step
            UpstreamError / MalformedPlanError: Plan generation failed
        """
        start_time = time.time()
        total_steps = 1 + request.frame_count
        reporter = ProgressReporter(on_progress, total_steps)

        initial_state: StoryboardState = {
            "request": request,
            "status": WorkflowStatus.PLANNING.value,
            "plan": None,
            "current_index": 0,
            "frames": [],
            "failed_frames": [],
            "result": None
        }

        logger.info(f"[Workflow] Starting storyboard run: {request.frame_count} frames via {self.backend.name}")
        final_state = await self.graph.ainvoke(
            initial_state,
            config={
                "configurable": {"progress": reporter},
                "recursion_limit": request.frame_count + 10
            }
        )

        result = final_state["result"]
        logger.info(f"[Workflow] Storyboard run finished in {format_time(time.time() - start_time)}")
        return result

    async def regenerate_text(self, request: GenerationRequest, result: StoryboardResult) -> StoryboardResult:
        """
        Re-run the plan agent and replace only the text fields.

        Frames (ids, images, scripts) are kept as they are. Errors propagate
        and the passed result is never modified.
        """
        logger.info("[Workflow] Regenerating storyboard text")
        plan = await generate_plan(request, self.backend, enforce_product_rule=self.enforce_product_rule)
        return result.with_text(plan)

    async def regenerate_frame(
        self,
        request: GenerationRequest,
        result: StoryboardResult,
        frame_id: int
    ) -> StoryboardResult:
        """
        Re-render one frame by id and replace only its image.

        Unlike a full run, failures are not replaced by a placeholder: the
        error reaches the caller and the passed result stays as it was.

        Raises:
            FrameNotFoundError: Unknown frame id
            AuthenticationError / UpstreamError / MissingAssetError: Render failed
        """
        frame = result.get_frame(frame_id)
        logger.info(f"[Workflow] Regenerating frame {frame_id}")
        image_url = await render_frame(frame, request, self.backend, frame_id=frame_id)
        return result.with_frame_image(frame_id, image_url)


async def generate_storyboard(
    request: GenerationRequest,
    backend: GenerationBackend,
    on_progress: Optional[ProgressCallback] = None,
    chain_frames: bool = CHAIN_FRAMES
) -> StoryboardResult:
    """Convenience wrapper running one full storyboard generation"""
    return await StoryboardWorkflow(backend, chain_frames=chain_frames).generate(request, on_progress)
