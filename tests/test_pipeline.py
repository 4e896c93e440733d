"""
Request pipeline (controller/pipeline.py)

Drives RequestPipeline directly with mocked request/response objects.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from larkspur.config import JSON_RESULT_OPTIONS, ConfigContainer
from larkspur.controller import GET, JsonResult, RequestPipeline, StringResult, controller
from larkspur.controller.pipeline import AsyncOutcome, StringOutcome, StructuredOutcome, classify
from larkspur.di import Container
from larkspur.faults import BadRequest, InvalidResultTypeError
from larkspur.metadata import Reflection


@controller("items")
class ItemsController:

    @GET("{id}")
    def show(self, id: int, q: str = "x"):
        return f"{id}:{q}"

    @GET("json")
    def as_json(self):
        return JsonResult({"a": 1})

    @GET("nested")
    async def nested(self):
        return StringResult("never")

    @GET("deep")
    async def deep(self):
        return self.nested()


def pipeline_for(method_name: str) -> RequestPipeline:
    configs = ConfigContainer()
    configs.update(JSON_RESULT_OPTIONS, {"indentation": False, "static_type": False})
    meta = Reflection.get_controller_metadata(ItemsController)
    return RequestPipeline(Container(), configs, meta, meta.routes[method_name])


def mock_response() -> MagicMock:
    response = MagicMock()
    response.send = AsyncMock()
    return response


class TestClassify:

    def test_string(self):
        assert classify("ok", "h") == StringOutcome("ok")

    def test_method_result(self):
        result = StringResult("ok")
        assert classify(result, "h") == StructuredOutcome(result)

    def test_awaitable(self):
        async def later():
            return "ok"

        pending = later()
        assert isinstance(classify(pending, "h"), AsyncOutcome)
        pending.close()

    def test_rejects_other_values(self):
        with pytest.raises(InvalidResultTypeError) as exc:
            classify({"a": 1}, "Items.show")
        assert exc.value.metadata == {"handler": "Items.show", "type": "dict"}


class TestRequestPipeline:

    @pytest.mark.asyncio
    async def test_path_and_query_extracted(self):
        request = MagicMock()
        request.param.return_value = 5
        request.query.return_value = None
        response = mock_response()

        await pipeline_for("show")(request, response)

        request.param.assert_called_once_with("id", int)
        request.query.assert_called_once_with("q", str)
        response.send.assert_awaited_once_with("5:x")

    @pytest.mark.asyncio
    async def test_bad_parameter_is_bad_request(self):
        request = MagicMock()
        request.param.side_effect = ValueError("not a number")

        with pytest.raises(BadRequest) as exc:
            await pipeline_for("show")(request, mock_response())
        assert exc.value.metadata["parameter"] == "id"

    @pytest.mark.asyncio
    async def test_structured_result_sent_with_content_type(self):
        response = mock_response()
        await pipeline_for("as_json")(MagicMock(), response)
        response.send.assert_awaited_once_with('{"a":1}', content_type=JsonResult.content_type)

    @pytest.mark.asyncio
    async def test_nested_awaitable_rejected(self):
        response = mock_response()
        with pytest.raises(InvalidResultTypeError):
            await pipeline_for("deep")(MagicMock(), response)
        response.send.assert_not_awaited()

    def test_handler_name(self):
        assert pipeline_for("show").handler_name == "ItemsController.show"
