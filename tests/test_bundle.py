import io
import json

import pytest

from cnabkit.bundle import (
    Action,
    Bundle,
    BundleError,
    Image,
    InvocationImage,
    Location,
    LocationRef,
    Maintainer,
    ParameterDefinition,
    ParameterValueError,
    parse_reader,
    unmarshal,
    values_or_defaults,
)

FOO_JSON = json.dumps(
    {
        "name": "foo",
        "version": "1.0",
        "images": [
            {
                "description": "image1",
                "imageType": "docker",
                "image": "urn:image1uri",
                "refs": [{"path": "image1path", "field": "image.1.field"}],
            },
            {
                "description": "image2",
                "imageType": "docker",
                "image": "urn:image2uri",
                "refs": [{"path": "image2path", "field": "image.2.field"}],
            },
        ],
        "invocationImages": [{"imageType": "docker", "image": "technosophos/helloworld:0.1.0"}],
        "credentials": {
            "foo": {"path": "pfoo"},
            "bar": {"env": "ebar"},
            "quux": {"path": "pquux", "env": "equux"},
        },
    }
)


def test_read_top_level_properties():
    data = '{"name": "foo", "version": "1.0", "images": [], "credentials": {}}'
    bundle = unmarshal(data.encode())
    assert bundle.name == "foo"
    assert bundle.version == "1.0"
    assert bundle.images == []
    assert bundle.credentials == {}


def test_read_image_properties():
    bundle = unmarshal(FOO_JSON)
    assert len(bundle.images) == 2
    image1 = bundle.images[0]
    assert image1.description == "image1"
    assert image1.image == "urn:image1uri"
    assert len(image1.refs) == 1
    assert image1.refs[0] == LocationRef(path="image1path", field="image.1.field")


def test_read_credential_properties():
    bundle = unmarshal(FOO_JSON)
    assert len(bundle.credentials) == 3
    assert bundle.credentials["foo"] == Location(path="pfoo", environment_variable="")
    assert bundle.credentials["bar"] == Location(path="", environment_variable="ebar")
    assert bundle.credentials["quux"] == Location(path="pquux", environment_variable="equux")


def test_values_or_defaults():
    vals = {"port": 8080, "host": "localhost", "enabled": True}
    bundle = Bundle(
        parameters={
            "port": ParameterDefinition(data_type="int", default_value=1234),
            "host": ParameterDefinition(data_type="string", default_value="localhost.localdomain"),
            "enabled": ParameterDefinition(data_type="bool", default_value=False),
            "replicaCount": ParameterDefinition(data_type="int", default_value=3),
        }
    )
    result = values_or_defaults(vals, bundle)
    assert result["enabled"] is True
    assert result["host"] == "localhost"
    assert result["port"] == 8080
    assert result["replicaCount"] == 3

    vals["replicaCount"] = "banana"
    with pytest.raises(ParameterValueError, match="banana"):
        values_or_defaults(vals, bundle)


def test_values_or_defaults_required():
    vals = {"enabled": True}
    bundle = Bundle(
        parameters={
            "minimum": ParameterDefinition(data_type="int", required=True),
            "enabled": ParameterDefinition(data_type="bool", default_value=False),
        }
    )
    with pytest.raises(ParameterValueError, match='parameter "minimum" is required'):
        values_or_defaults(vals, bundle)

    vals["minimum"] = 0
    result = values_or_defaults(vals, bundle)
    assert result["minimum"] == 0


def test_values_or_defaults_coerces_integral_float():
    bundle = Bundle(parameters={"port": ParameterDefinition(data_type="int")})
    result = values_or_defaults({"port": 80.0}, bundle)
    assert result["port"] == 80
    assert type(result["port"]) is int


def test_validate_bundle_requires_invocation_image():
    bundle = Bundle(name="bar", version="0.1.0")
    with pytest.raises(BundleError, match="at least one invocation image"):
        bundle.validate()
    bundle.invocation_images.append(InvocationImage())
    bundle.validate()
    assert len(bundle.invocation_images) == 1


def test_invocation_image_requires_tag():
    with pytest.raises(BundleError, match="tag is required"):
        InvocationImage(image_type="docker", image="foo/bar").validate()
    with pytest.raises(BundleError, match="tag is required"):
        InvocationImage(image_type="oci", image="foo/bar").validate()
    Bundle(invocation_images=[InvocationImage(image_type="qcow", image="plain")]).validate()
    assert InvocationImage(image_type="docker", image="foo/bar:1").image == "foo/bar:1"


def test_can_read_parameter_names():
    bundle = unmarshal('{"parameters": {"foo": {}, "bar": {}}}')
    assert set(bundle.parameters) == {"foo", "bar"}


def test_can_read_parameter_definition():
    data = json.dumps(
        {
            "parameters": {
                "test": {
                    "type": "int",
                    "defaultValue": "some default",
                    "allowedValues": ["foo", "bar"],
                    "minValue": 100,
                    "maxValue": 200,
                    "minLength": 300,
                    "maxLength": 400,
                    "metadata": {"description": "some description"},
                }
            }
        }
    )
    p = unmarshal(data).parameters["test"]
    assert p.data_type == "int"
    assert p.default_value == "some default"
    assert p.allowed_values == ["foo", "bar"]
    assert p.min_value == 100
    assert p.max_value == 200
    assert p.min_length == 300
    assert p.max_length == 400
    assert p.metadata.description == "some description"


def _value_test_json(representation):
    return (
        '{"parameters": {"test": {"defaultValue": %s, "allowedValues": [ %s ]}}}'
        % (representation, representation)
    )


@pytest.mark.parametrize(
    "representation, expected",
    [('"some string"', "some string"), ("123", 123), ("true", True)],
)
def test_can_read_values(representation, expected):
    definition = unmarshal(_value_test_json(representation)).parameters["test"]
    assert definition.default_value == expected
    assert type(definition.default_value) is type(expected)
    assert definition.allowed_values[0] == expected


def test_validate_string_any_allowed():
    pd = ParameterDefinition(data_type="string")
    pd.validate_parameter_value("foo")
    with pytest.raises(ParameterValueError, match="value is not a string"):
        pd.validate_parameter_value(17)


def test_validate_string_allowed_only():
    pd = ParameterDefinition(data_type="string", allowed_values=["foo", "bar"])
    pd.validate_parameter_value("foo")
    with pytest.raises(ParameterValueError, match="allowed values"):
        pd.validate_parameter_value("quux")


def test_validate_string_min_length():
    pd = ParameterDefinition(data_type="string", min_length=5)
    pd.validate_parameter_value("foobar")
    with pytest.raises(ParameterValueError, match="value is too short: minimum length is 5"):
        pd.validate_parameter_value("foo")


def test_validate_string_max_length():
    pd = ParameterDefinition(data_type="string", max_length=5)
    pd.validate_parameter_value("foo")
    with pytest.raises(ParameterValueError, match="value is too long: maximum length is 5"):
        pd.validate_parameter_value("foobar")


def test_validate_int_any_allowed():
    pd = ParameterDefinition(data_type="int")
    pd.validate_parameter_value(17)
    pd.validate_parameter_value(17.0)
    with pytest.raises(ParameterValueError, match="value is not an integer"):
        pd.validate_parameter_value(17.5)
    with pytest.raises(ParameterValueError, match="value is not a number"):
        pd.validate_parameter_value("17")
    with pytest.raises(ParameterValueError, match="value is not a number"):
        pd.validate_parameter_value(True)


def test_validate_int_allowed_only():
    pd = ParameterDefinition(data_type="int", allowed_values=[17, 23])
    pd.validate_parameter_value(17)
    pd.validate_parameter_value(23.0)
    with pytest.raises(ParameterValueError, match="allowed values"):
        pd.validate_parameter_value(58)


def test_validate_int_float_allowed_values_are_intified():
    pd = ParameterDefinition(data_type="int", allowed_values=[17.0])
    pd.validate_parameter_value(17)
    with pytest.raises(ParameterValueError):
        pd.validate_parameter_value(18)


def test_validate_int_min_value():
    pd = ParameterDefinition(data_type="int", min_value=5)
    pd.validate_parameter_value(17)
    with pytest.raises(ParameterValueError) as excinfo:
        pd.validate_parameter_value(3)
    assert str(excinfo.value) == "value is too low: minimum value is 5"


def test_validate_int_max_value():
    pd = ParameterDefinition(data_type="int", max_value=5)
    pd.validate_parameter_value(3)
    with pytest.raises(ParameterValueError) as excinfo:
        pd.validate_parameter_value(17)
    assert str(excinfo.value) == "value is too high: maximum value is 5"


def test_validate_bool():
    pd = ParameterDefinition(data_type="bool")
    pd.validate_parameter_value(True)
    with pytest.raises(ParameterValueError, match="value is not a boolean"):
        pd.validate_parameter_value(17)
    with pytest.raises(ParameterValueError, match="value is not a boolean"):
        pd.validate_parameter_value("17")


def test_validate_unknown_type():
    with pytest.raises(ParameterValueError, match="invalid parameter definition"):
        ParameterDefinition(data_type="float").validate_parameter_value(1.5)


def test_convert_value():
    pd = ParameterDefinition(data_type="bool")
    assert pd.convert_value("true") is True
    assert pd.convert_value("TRUE") is True
    assert pd.convert_value("false") is False
    with pytest.raises(ParameterValueError, match="is not a valid boolean"):
        pd.convert_value("barbeque")

    pd.data_type = "string"
    assert pd.convert_value("hello") == "hello"

    pd.data_type = "int"
    assert pd.convert_value("123") == 123
    assert pd.convert_value("-7") == -7
    with pytest.raises(ParameterValueError):
        pd.convert_value("onetwothree")

    pd.data_type = "other"
    with pytest.raises(ParameterValueError, match="invalid parameter definition"):
        pd.convert_value("1")


def test_coerce_value():
    pd = ParameterDefinition(data_type="int")
    assert type(pd.coerce_value(3.0)) is int
    assert pd.coerce_value(3.5) == 3.5
    assert ParameterDefinition(data_type="string").coerce_value(3.0) == 3.0


def _full_bundle():
    return Bundle(
        name="foo",
        version="1.0",
        description="desc",
        keywords=["a", "b"],
        maintainers=[Maintainer(name="jane", email="jane@example.com", url="https://example.com")],
        invocation_images=[InvocationImage(image_type="docker", image="foo/bar:1.0", size=10)],
        images=[Image(image="img:1", image_type="docker", description="img", refs=[LocationRef("p", "f")])],
        actions={"test": Action(modifies=True)},
        parameters={
            "port": ParameterDefinition(
                data_type="int",
                default_value=80,
                min_value=1,
                destination=Location(environment_variable="PORT"),
            )
        },
        credentials={"token": Location(path="/token")},
    )


def test_json_round_trip():
    bundle = _full_bundle()
    assert unmarshal(bundle.to_json()) == bundle


def test_to_dict_uses_json_keys():
    document = _full_bundle().to_dict()
    assert document["invocationImages"][0] == {
        "imageType": "docker",
        "image": "foo/bar:1.0",
        "size": 10,
    }
    assert document["actions"] == {"test": {"Modifies": True}}
    assert document["parameters"]["port"]["destination"] == {"path": "", "env": "PORT"}


def test_write_file_and_parse_reader(tmp_path):
    bundle = _full_bundle()
    dest = tmp_path / "bundle.json"
    bundle.write_file(dest, 0o644)
    with open(dest, "rb") as handle:
        assert parse_reader(handle) == bundle


def test_write_to_returns_length():
    bundle = _full_bundle()
    buffer = io.BytesIO()
    written = bundle.write_to(buffer)
    assert written == len(buffer.getvalue())
    assert unmarshal(buffer.getvalue()) == bundle


def test_unmarshal_rejects_bad_json():
    with pytest.raises(BundleError):
        unmarshal("{not json")
    with pytest.raises(BundleError):
        unmarshal("[1, 2]")